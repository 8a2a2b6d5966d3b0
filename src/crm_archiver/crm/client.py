"""Client for the SuiteCRM v4.1 REST API."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Any

import httpx

from ..core.config import CrmSettings

LOGGER = logging.getLogger(__name__)

REST_PATH = "/service/v4_1/rest.php"

# SuiteCRM error number for an expired or unknown session.
INVALID_SESSION_ERROR = 11


class CrmError(RuntimeError):
    """Raised when the CRM cannot be reached or reports an error."""

    def __init__(self, message: str, number: int | None = None) -> None:
        super().__init__(message)
        self.number = number


class SuiteCrmClient:
    """Thin synchronous wrapper over the SuiteCRM REST endpoint."""

    def __init__(
        self, settings: CrmSettings, *, http_client: httpx.Client | None = None
    ) -> None:
        """Initialise the client; pass ``http_client`` to control transport."""
        self._settings = settings
        self._http = http_client or httpx.Client(timeout=settings.timeout_seconds)
        self._endpoint = settings.base_url.rstrip("/") + REST_PATH
        self._session_id: str | None = None

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SuiteCrmClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # Session ------------------------------------------------------------------
    @property
    def has_session(self) -> bool:
        """Return ``True`` once :meth:`login` has succeeded."""
        return self._session_id is not None

    def login(self) -> str:
        """Authenticate and remember the session id."""
        username = self._settings.username
        password = self._settings.password
        if not username or password is None:
            raise CrmError("CRM credentials are not configured")
        LOGGER.debug("Logging in to CRM as %s", username)
        payload = self._call(
            "login",
            {
                "user_auth": {
                    "user_name": username,
                    "password": hashlib.md5(password.encode("utf-8")).hexdigest(),
                },
                "application_name": self._settings.application_name,
                "name_value_list": [],
            },
        )
        session_id = payload.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise CrmError("CRM login response did not include a session id")
        self._session_id = session_id
        return session_id

    # API calls ----------------------------------------------------------------
    def set_entry(self, module_name: str, fields: Mapping[str, Any]) -> str:
        """Create or update a record and return its id."""
        payload = self._session_call(
            "set_entry",
            {
                "module_name": module_name,
                "name_value_list": [
                    {"name": name, "value": value}
                    for name, value in fields.items()
                    if value is not None
                ],
            },
        )
        record_id = payload.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise CrmError(f"set_entry on {module_name} returned no id")
        return record_id

    def get_entry_list(
        self,
        module_name: str,
        query: str,
        *,
        select_fields: Sequence[str] = ("id",),
        max_results: int = 20,
    ) -> list[dict[str, Any]]:
        """Return the records of ``module_name`` matching the SQL ``query``."""
        payload = self._session_call(
            "get_entry_list",
            {
                "module_name": module_name,
                "query": query,
                "order_by": "",
                "offset": 0,
                "select_fields": list(select_fields),
                "link_name_to_fields_array": [],
                "max_results": max_results,
                "deleted": 0,
            },
        )
        entries = payload.get("entry_list") or []
        return [entry for entry in entries if isinstance(entry, dict)]

    def set_relationship(
        self,
        module_name: str,
        module_id: str,
        link_field_name: str,
        related_ids: Sequence[str],
    ) -> dict[str, Any]:
        """Link ``related_ids`` to a record through ``link_field_name``."""
        return self._session_call(
            "set_relationship",
            {
                "module_name": module_name,
                "module_id": module_id,
                "link_field_name": link_field_name,
                "related_ids": list(related_ids),
                "name_value_list": [],
                "delete": 0,
            },
        )

    def try_set_relationship(
        self, module1: str, id1: str, module2: str, id2: str
    ) -> bool:
        """Relate ``module1``/``id1`` to ``module2``/``id2``; report success."""
        try:
            payload = self.set_relationship(module1, id1, module2.lower(), [id2])
        except CrmError as exc:
            LOGGER.warning(
                "set_relationship %s:%s -> %s:%s failed: %s",
                module1,
                id1,
                module2,
                id2,
                exc,
            )
            return False
        created = _as_int(payload.get("created"))
        failed = _as_int(payload.get("failed"))
        return created > 0 and failed == 0

    def close(self) -> None:
        """Release the HTTP connection pool."""
        self._http.close()

    # Internal helpers ---------------------------------------------------------
    def _session_call(self, method: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if self._session_id is None:
            self.login()
        try:
            return self._call(method, {"session": self._session_id, **arguments})
        except CrmError as exc:
            if exc.number != INVALID_SESSION_ERROR:
                raise
            LOGGER.info("CRM session expired; logging in again")
            self._session_id = None
            self.login()
            return self._call(method, {"session": self._session_id, **arguments})

    def _call(self, method: str, arguments: dict[str, Any]) -> dict[str, Any]:
        form = {
            "method": method,
            "input_type": "JSON",
            "response_type": "JSON",
            "rest_data": json.dumps(arguments),
        }
        try:
            response = self._http.post(self._endpoint, data=form)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise CrmError(f"CRM request '{method}' failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CrmError(f"CRM returned invalid JSON for '{method}'") from exc

        if not isinstance(payload, dict):
            raise CrmError(f"CRM returned an unexpected payload for '{method}'")
        if "number" in payload and "description" in payload:
            raise CrmError(
                f"CRM rejected '{method}': {payload.get('name')}: "
                f"{payload.get('description')}",
                number=_as_int(payload.get("number")),
            )
        return payload


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


__all__ = ["CrmError", "SuiteCrmClient"]
