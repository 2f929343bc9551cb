from http import HTTPStatus
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from axon import crud
from axon.errors import NotFoundError, OperationFailed, ProxyTimeout, error_for_status


def test_commit_failure_returns_500(client, db_session, auth_headers, monkeypatch):
    """A failing commit is rolled back and reported as a StorageError envelope."""
    mock = MagicMock(side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")))
    monkeypatch.setattr(db_session, "commit", mock)

    response = client.post("/api/collections", json={"name": "Doomed"}, headers=auth_headers)

    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json() == {
        "success": False,
        "error": "Database commit failed",
        "code": "StorageError",
    }
    assert mock.called


def test_crud_errors_pass_through_routes(client, auth_headers, monkeypatch):
    mock = MagicMock(side_effect=NotFoundError("Collection gone not found"))
    monkeypatch.setattr(crud, "update_collection", mock)

    response = client.put("/api/collections/gone", json={"name": "x"}, headers=auth_headers)

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()["error"] == "Collection gone not found"
    assert mock.called


def test_error_for_status_rebuilds_classes():
    timeout = error_for_status(408, "slow", "ProxyTimeout")
    assert isinstance(timeout, ProxyTimeout)
    assert timeout.message == "slow"

    by_status = error_for_status(404, "missing")
    assert isinstance(by_status, NotFoundError)

    unknown = error_for_status(418, "teapot", "NoSuchError")
    assert unknown.status_code == 418
    assert type(unknown).__name__ == "AxonError"

    assert error_for_status(503, "down", "OperationFailed").status_code == OperationFailed.status_code
