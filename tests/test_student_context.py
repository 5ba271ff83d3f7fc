import asyncio

from campus_qr.errors import ApiError
from campus_qr.storage import JsonFileStore
from campus_qr.student_context import StudentContext, StudentContextCache
from campus_qr.token import TokenType


def test_refresh_persists_profile_fields_as_strings(client, store, tmp_path):
    client.get_student_profile.return_value = {"year": 3, "division": "B", "subBranch": "B2"}
    cache = StudentContextCache(store, client)

    context = asyncio.run(cache.refresh())

    client.get_student_profile.assert_awaited_once_with("S-1001")
    assert context == StudentContext(student_id="S-1001", year="3", division="B", batch="B2")
    reloaded = JsonFileStore(tmp_path / "storage.json")
    assert reloaded.get_item("studentYear") == "3"
    assert reloaded.get_item("studentSubBranch") == "B2"


def test_refresh_failure_keeps_previous_cache(client, store, caplog):
    client.get_student_profile.side_effect = ApiError(500)
    cache = StudentContextCache(store, client)

    assert asyncio.run(cache.refresh()) is None

    assert cache.read().batch == "C1"
    assert any("Failed to load student data" in r.getMessage() for r in caplog.records)


def test_refresh_without_student_id_skips_network(client, tmp_path):
    cache = StudentContextCache(JsonFileStore(tmp_path / "empty.json"), client)

    assert asyncio.run(cache.refresh()) is None
    client.get_student_profile.assert_not_called()


def test_missing_fields_depend_on_token_type():
    context = StudentContext(student_id="S-1", year="2", division="A")

    assert context.missing_for(TokenType.THEORY) == []
    assert context.missing_for(TokenType.LAB) == ["batch"]
    assert StudentContext().missing_for(TokenType.THEORY) == ["student_id", "year", "division"]


def test_lab_comparison_normalizes_to_strings():
    context = StudentContext(student_id="S-1", year="2", division="A", batch="C1")

    assert context.lab_mismatches(2, "A", "C1") == []
    assert context.lab_mismatches("2", "A", "c1") == ["batch"]
    assert context.lab_mismatches(None, "A", "C1") == ["year"]


def test_lab_comparison_treats_blank_token_fields_as_mismatches():
    context = StudentContext(student_id="S-1", year="2", division="A", batch="C1")

    assert context.lab_mismatches(" 2 ", "  ", "C1 ") == ["division"]
    assert StudentContext(student_id="S-1").lab_mismatches("", None, "C1") == ["year", "division", "batch"]
