import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from campus_qr.errors import SessionError
from campus_qr.session import create_lab_session, delete_lab_session, login, logout
from campus_qr.storage import JsonFileStore
from campus_qr.token import TokenType


@pytest.fixture
def api():
    api = AsyncMock()
    api.login.return_value = {"success": True, "id": "S-7", "year": 2, "division": "B"}
    api.create_lab_session.return_value = {"sessionId": "L-5", "expiresAt": "2026-10-18T11:00:00Z"}
    return api


def test_student_login_seeds_identity_and_context(api, tmp_path):
    store = JsonFileStore(tmp_path / "s.json")

    asyncio.run(login(api, store, "student", "S-7", "pw"))

    api.login.assert_awaited_once_with("student", "S-7", "pw")
    assert store.data == {
        "userType": "student",
        "studentId": "S-7",
        "studentYear": "2",
        "studentDivision": "B",
    }


def test_logout_clears_identity_even_when_backend_is_down(api, store):
    store.set_item("userType", "student")
    api.logout.side_effect = aiohttp.ClientConnectionError("offline")

    asyncio.run(logout(api, store))

    api.logout.assert_awaited_once_with("S-1001")
    assert store.data == {}


def test_lab_session_for_logged_in_teacher(api, tmp_path):
    store = JsonFileStore(tmp_path / "t.json")
    store.set_item("teacherId", "T-1")

    session = asyncio.run(
        create_lab_session(api, store, year=2, division="A", batch="C1", subject="Networks")
    )
    asyncio.run(delete_lab_session(api, session.session_id))

    api.create_lab_session.assert_awaited_once_with("T-1", 2, "A", "C1", "Networks")
    api.delete_lab_session.assert_awaited_once_with("L-5")
    assert session.type is TokenType.LAB
    assert (session.session_id, session.batch) == ("L-5", "C1")


def test_lab_session_requires_teacher_login(api, tmp_path):
    with pytest.raises(SessionError, match="No teacher"):
        asyncio.run(
            create_lab_session(
                api, JsonFileStore(tmp_path / "t.json"), year=2, division="A", batch="C1", subject="Networks"
            )
        )
    api.create_lab_session.assert_not_called()
