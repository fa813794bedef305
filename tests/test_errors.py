# tests/test_errors.py

"""
Tests for the structured error responses.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.app.core.errors import (
    ConcurrentModification, InvalidArgument, PermissionDenied, ResourceNotFound, Unauthenticated,
    install_error_handlers,
)


def _app():
    app = FastAPI()
    install_error_handlers(app)

    @app.get("/denied")
    async def denied():
        raise PermissionDenied("Nope.")

    @app.get("/missing")
    async def missing():
        raise ResourceNotFound("abc")

    @app.get("/conflict")
    async def conflict():
        raise ConcurrentModification()

    @app.get("/anonymous")
    async def anonymous():
        raise Unauthenticated()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @app.get("/typed/{n}")
    async def typed(n: int):
        return {"n": n}

    return app


def test_planner_errors_render_kind_and_message():
    client = TestClient(_app())
    resp = client.get("/denied")
    assert resp.status_code == 403
    assert resp.json() == {"error": {"kind": "permission-denied", "message": "Nope."}}

    resp = client.get("/missing")
    assert resp.status_code == 404
    assert resp.json()["error"] == {"kind": "invalid-argument", "message": "The activity abc doesn't exist."}

    assert client.get("/conflict").json()["error"]["kind"] == "aborted"
    assert client.get("/anonymous").status_code == 401


def test_unhandled_errors_do_not_leak_details():
    client = TestClient(_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": {"kind": "internal", "message": "An internal error occurred."}}
    assert "hunter2" not in resp.text


def test_request_validation_is_invalid_argument():
    client = TestClient(_app())
    resp = client.get("/typed/abc")
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid-argument"


def test_resource_not_found_names_the_resource():
    error = ResourceNotFound("r1", resource="risk")
    assert isinstance(error, InvalidArgument)
    assert (error.resource, error.identifier, error.status_code) == ("risk", "r1", 404)
    assert error.to_dict()["error"] == {"kind": "invalid-argument", "message": "The risk r1 doesn't exist."}
