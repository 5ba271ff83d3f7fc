import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from campus_qr.api import AttendanceApi
from campus_qr.errors import ApiError, DuplicateSubmission


def run_against(routes, scenario):
    """Start a local aiohttp app with `routes` and run `scenario(api, calls)`."""
    calls = []

    async def main():
        app = web.Application()
        for method, path, handler in routes:
            async def recorder(request, handler=handler):
                body = await request.json() if request.can_read_body else None
                calls.append((request.method, request.path, body))
                return await handler(request)

            app.router.add_route(method, path, recorder)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            async with AttendanceApi(str(server.make_url("/")), timeout_seconds=2) as api:
                return await scenario(api)
        finally:
            await server.close()

    return asyncio.run(main()), calls


async def ok(request):
    return web.json_response({"success": True})


def test_mark_attendance_posts_student_fields():
    result, calls = run_against(
        [("POST", "/api/attendance/mark", ok)],
        lambda api: api.mark_attendance("S1", "S-1001", "2", "A"),
    )

    assert result == {"success": True}
    assert calls == [
        (
            "POST",
            "/api/attendance/mark",
            {"sessionId": "S1", "studentId": "S-1001", "studentYear": "2", "studentDivision": "A"},
        )
    ]


def test_lab_mark_conflict_raises_api_error_with_status():
    async def conflict(request):
        return web.json_response({"msg": "Attendance already marked"}, status=409)

    async def scenario(api):
        with pytest.raises(ApiError) as excinfo:
            await api.mark_lab_attendance("L1", "S-1001", "2", "A", "C1")
        return excinfo.value

    error, calls = run_against([("POST", "/api/lab-attendance/mark", conflict)], scenario)

    assert error.status == 409
    assert error.message == "Attendance already marked"
    assert isinstance(error.to_check_in_error(), DuplicateSubmission)
    assert calls[0][2]["studentBatch"] == "C1"


def test_non_json_error_body_still_raises():
    async def broken(request):
        return web.Response(text="<html>bad gateway</html>", status=502)

    async def scenario(api):
        with pytest.raises(ApiError) as excinfo:
            await api.get_student_profile("S-1001")
        return excinfo.value

    error, _ = run_against([("GET", "/api/student/me/S-1001", broken)], scenario)

    assert error.status == 502
    assert error.message is None


def test_login_registers_user_session():
    async def student_login(request):
        return web.json_response({"success": True, "id": "S-1001", "year": 2, "division": "A"})

    user, calls = run_against(
        [("POST", "/api/auth/student/login", student_login), ("POST", "/api/users/login", ok)],
        lambda api: api.login("student", "S-1001", "secret"),
    )

    assert user["id"] == "S-1001"
    assert calls[1] == ("POST", "/api/users/login", {"userId": "S-1001", "role": "student"})


def test_rejected_login_raises_without_registering():
    async def denied(request):
        return web.json_response({"success": False, "msg": "Invalid credentials"})

    async def scenario(api):
        with pytest.raises(ApiError):
            await api.login("teacher", "T-1", "wrong")

    _, calls = run_against([("POST", "/api/auth/teacher/login", denied)], scenario)

    assert [path for _, path, _ in calls] == ["/api/auth/teacher/login"]


def test_create_and_delete_lab_session():
    async def create(request):
        return web.json_response({"sessionId": "L-77", "expiresAt": "2026-10-18T10:00:00Z"})

    async def scenario(api):
        created = await api.create_lab_session("T-1", 2, "A", "C1", "Networks")
        await api.delete_lab_session(created["sessionId"])
        return created

    created, calls = run_against(
        [
            ("POST", "/api/lab-attendance/session/create", create),
            ("DELETE", "/api/lab-attendance/session/delete", ok),
        ],
        scenario,
    )

    assert created["sessionId"] == "L-77"
    assert calls[1] == ("DELETE", "/api/lab-attendance/session/delete", {"sessionId": "L-77"})
