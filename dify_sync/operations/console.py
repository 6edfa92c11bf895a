"""Console API client for application definitions."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from dify_sync.errors import ConsoleClientError
from dify_sync.session import ConsoleSession

logger = logging.getLogger(__name__)


class Application(BaseModel):
    """An application listed by the console."""

    id: str
    name: str
    mode: str | None = None


class ConsoleClient:
    """Cookie-authenticated client for the console's app endpoints.

    Example:
        with ConsoleClient(session) as console:
            for app in console.list_applications():
                yaml_text = console.export_definition(app.id)
    """

    def __init__(
        self,
        session: ConsoleSession,
        *,
        base_url: str | None = None,
        timeout: float = 30,
        page_size: int = 100,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or session.base_url).rstrip("/")
        self.page_size = page_size
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={
                "Cookie": session.cookie_header,
                "X-CSRF-Token": session.csrf_token,
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "ConsoleClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._http.request(method, path, **kwargs)
        if response.is_error:
            raise ConsoleClientError(
                f"Console API error {response.status_code}: {response.text}",
                response.status_code,
                response.text,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ConsoleClientError(
                f"{method} {path} returned non-JSON body", response.status_code, response.text
            ) from e

    def list_applications(self) -> list[Application]:
        """List every application, following pagination."""
        apps: list[Application] = []
        page = 1

        while True:
            body = self._request("GET", f"/console/api/apps?page={page}&limit={self.page_size}")
            if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                raise ConsoleClientError("App list response lacks a 'data' array", 200, body)
            apps.extend(Application.model_validate(item) for item in body["data"])
            if not body.get("has_more"):
                return apps
            page += 1

    def export_definition(self, app_id: str, include_secret: bool = False) -> str:
        """Return the application's definition as YAML text."""
        flag = "true" if include_secret else "false"
        body = self._request("GET", f"/console/api/apps/{app_id}/export?include_secret={flag}")
        if not isinstance(body, dict) or not isinstance(body.get("data"), str):
            raise ConsoleClientError(f"Export of {app_id} returned no definition", 200, body)
        return body["data"]

    def import_definition(self, content: str) -> str:
        """Create a new application from YAML text and return its id."""
        body = self._request("POST", "/console/api/apps/import", files={"data": (None, content)})
        if not isinstance(body, dict) or not body.get("app_id"):
            raise ConsoleClientError("Import returned no app_id", 200, body)
        return str(body["app_id"])

    def replace_definition(self, app_id: str, content: str) -> None:
        """Overwrite an existing application's definition."""
        self._request("POST", f"/console/api/apps/{app_id}/import", files={"data": (None, content)})
