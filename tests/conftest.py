import pathlib
import sys
from unittest.mock import AsyncMock

import pytest

SYS_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = SYS_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from campus_qr.storage import JsonFileStore

T0 = 1_700_000_000_000


@pytest.fixture
def store(tmp_path):
    store = JsonFileStore(tmp_path / "storage.json")
    store.multi_set(
        [
            ("studentId", "S-1001"),
            ("studentYear", "2"),
            ("studentDivision", "A"),
            ("studentSubBranch", "C1"),
        ]
    )
    return store


@pytest.fixture
def client():
    client = AsyncMock()
    client.mark_attendance.return_value = {"success": True}
    client.mark_lab_attendance.return_value = {"success": True}
    client.get_student_profile.return_value = {"year": 2, "division": "A", "subBranch": "C1"}
    return client
