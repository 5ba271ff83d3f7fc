import asyncio
import json

import pytest

from campus_qr.emitter import EmitterSession, TokenEmitter
from campus_qr.token import TokenType, parse_token

T0 = 1_700_000_000_000


class StepClock:
    def __init__(self, start: int, step: int = 3000) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def test_tick_builds_theory_token_from_clock():
    emitter = TokenEmitter(EmitterSession(session_id="S1"), clock=lambda: T0)

    raw = emitter.tick()

    assert json.loads(raw) == {"type": "ATTENDANCE_QR", "sessionId": "S1", "issuedAt": T0}
    assert emitter.current == raw


def test_tick_builds_lab_token_with_batch():
    session = EmitterSession(session_id="L1", type=TokenType.LAB, year=2, division="A", batch="C1")
    emitter = TokenEmitter(session, clock=StepClock(T0))

    token = parse_token(emitter.tick())

    assert token.type is TokenType.LAB
    assert (token.year, token.division, token.batch) == (2, "A", "C1")
    assert emitter.current_token == token


def test_issued_at_strictly_increases_even_with_a_stalled_clock():
    emitter = TokenEmitter(EmitterSession(session_id="S1"), clock=lambda: T0)

    stamps = [parse_token(emitter.tick()).issued_at for _ in range(4)]

    assert stamps == [T0, T0 + 1, T0 + 2, T0 + 3]


def test_only_current_and_previous_two_tokens_are_accepted():
    emitter = TokenEmitter(EmitterSession(session_id="S1"), clock=StepClock(T0))
    for _ in range(4):
        emitter.tick()

    assert emitter.accepted_issued_at() == (T0 + 3000, T0 + 6000, T0 + 9000)
    assert emitter.is_accepted(T0 + 9000)
    assert not emitter.is_accepted(T0)


def test_lab_session_requires_year_division_and_batch():
    with pytest.raises(ValueError):
        EmitterSession(session_id="L1", type=TokenType.LAB, year=2, division="A")
    with pytest.raises(ValueError):
        EmitterSession(session_id="")


def test_periodic_loop_ticks_and_stops_cleanly():
    seen = []

    async def scenario():
        emitter = TokenEmitter(EmitterSession(session_id="S1"), interval_ms=10, on_token=seen.append)
        async with emitter:
            assert emitter.running
            await asyncio.sleep(0.05)
        assert not emitter.running
        count = len(seen)
        await asyncio.sleep(0.03)
        return count

    count = asyncio.run(scenario())

    assert count >= 2
    assert len(seen) == count
    stamps = [parse_token(raw).issued_at for raw in seen]
    assert stamps == sorted(set(stamps))


def test_failing_callback_ends_loop_and_stop_reraises():
    seen = []

    def broken_display(payload):
        seen.append(payload)
        raise OSError("disk full")

    async def scenario():
        emitter = TokenEmitter(EmitterSession(session_id="S1"), interval_ms=10, on_token=broken_display)
        emitter.start()
        await asyncio.wait_for(emitter.wait(), timeout=1)
        assert not emitter.running
        with pytest.raises(OSError, match="disk full"):
            await emitter.stop()

    asyncio.run(scenario())

    assert len(seen) == 1
