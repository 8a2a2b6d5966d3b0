"""Tests for the SuiteCRM REST client."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from crm_archiver.core.config import CrmSettings
from crm_archiver.crm import CrmError, SuiteCrmClient

SETTINGS = CrmSettings(
    base_url="https://crm.example.com/",
    username="archiver",
    password="secret",
)


class RecordingBackend:
    """Answers REST calls from per-method handlers and records requests."""

    def __init__(self, **handlers: Callable[[dict[str, Any]], Any]) -> None:
        self.handlers = handlers
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url == "https://crm.example.com/service/v4_1/rest.php"
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        assert form["input_type"] == "JSON"
        assert form["response_type"] == "JSON"
        method = form["method"]
        arguments = json.loads(form["rest_data"])
        self.requests.append((method, arguments))
        handler = self.handlers.get(method)
        if handler is None:
            return httpx.Response(500)
        return httpx.Response(200, json=handler(arguments))

    def methods(self) -> list[str]:
        return [method for method, _ in self.requests]


def _client(backend: RecordingBackend) -> SuiteCrmClient:
    http = httpx.Client(transport=httpx.MockTransport(backend))
    return SuiteCrmClient(SETTINGS, http_client=http)


def _login(arguments: dict[str, Any]) -> dict[str, Any]:
    del arguments
    return {"id": "session-1", "module_name": "Users"}


def test_login_sends_hashed_password() -> None:
    backend = RecordingBackend(login=_login)
    client = _client(backend)

    assert client.login() == "session-1"
    assert client.has_session

    _, arguments = backend.requests[0]
    assert arguments["user_auth"] == {
        "user_name": "archiver",
        "password": hashlib.md5(b"secret").hexdigest(),
    }
    assert arguments["application_name"] == "crm-archiver"


def test_login_rejected_raises() -> None:
    backend = RecordingBackend(
        login=lambda _: {
            "name": "Invalid Login",
            "number": 10,
            "description": "Login attempt failed please check the username and password",
        }
    )
    client = _client(backend)

    with pytest.raises(CrmError, match="Invalid Login") as excinfo:
        client.login()
    assert excinfo.value.number == 10
    assert not client.has_session


def test_set_entry_logs_in_and_drops_empty_fields() -> None:
    backend = RecordingBackend(login=_login, set_entry=lambda _: {"id": "email-1"})
    client = _client(backend)

    record_id = client.set_entry("Emails", {"name": "Hello", "description": None})

    assert record_id == "email-1"
    assert backend.methods() == ["login", "set_entry"]
    _, arguments = backend.requests[1]
    assert arguments["session"] == "session-1"
    assert arguments["module_name"] == "Emails"
    assert arguments["name_value_list"] == [{"name": "name", "value": "Hello"}]


def test_expired_session_triggers_single_relogin() -> None:
    responses = iter(
        [
            {"name": "Invalid Session ID", "number": 11, "description": "expired"},
            {"id": "email-2"},
        ]
    )
    backend = RecordingBackend(login=_login, set_entry=lambda _: next(responses))
    client = _client(backend)

    assert client.set_entry("Emails", {"name": "Hello"}) == "email-2"
    assert backend.methods() == ["login", "set_entry", "login", "set_entry"]


def test_get_entry_list_returns_entries() -> None:
    backend = RecordingBackend(
        login=_login,
        get_entry_list=lambda _: {
            "result_count": 1,
            "entry_list": [{"id": "contact-1", "module_name": "Contacts"}],
        },
    )
    client = _client(backend)

    entries = client.get_entry_list("Contacts", "contacts.id = 'x'")

    assert entries == [{"id": "contact-1", "module_name": "Contacts"}]
    _, arguments = backend.requests[1]
    assert arguments["query"] == "contacts.id = 'x'"
    assert arguments["select_fields"] == ["id"]


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"created": 1, "failed": 0, "deleted": 0}, True),
        ({"created": 0, "failed": 1, "deleted": 0}, False),
        ({"created": 0, "failed": 0, "deleted": 0}, False),
    ],
)
def test_try_set_relationship_reports_backend_outcome(
    payload: dict[str, int], expected: bool
) -> None:
    backend = RecordingBackend(login=_login, set_relationship=lambda _: payload)
    client = _client(backend)

    assert client.try_set_relationship("Accounts", "acc-1", "Emails", "email-1") is expected

    _, arguments = backend.requests[-1]
    assert arguments["module_name"] == "Accounts"
    assert arguments["module_id"] == "acc-1"
    assert arguments["link_field_name"] == "emails"
    assert arguments["related_ids"] == ["email-1"]


def test_try_set_relationship_returns_false_on_http_error() -> None:
    backend = RecordingBackend(login=_login)
    client = _client(backend)

    assert client.try_set_relationship("Accounts", "acc-1", "emails", "email-1") is False


def test_http_errors_are_wrapped() -> None:
    client = _client(RecordingBackend())

    with pytest.raises(CrmError, match="'login' failed"):
        client.login()


def test_missing_credentials_raise() -> None:
    client = SuiteCrmClient(
        CrmSettings(),
        http_client=httpx.Client(transport=httpx.MockTransport(RecordingBackend())),
    )

    with pytest.raises(CrmError, match="credentials"):
        client.login()
