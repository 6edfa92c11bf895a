"""Knowledge API client.

Wraps dataset and document endpoints behind a retrying HTTP layer and
validates every payload into domain models before returning it.
"""

import logging
import time
from typing import Any

import httpx
from pydantic import BaseModel, Field

from dify_sync.config import Settings
from dify_sync.domain.models import (
    FINGERPRINT_FIELD,
    Dataset,
    IndexingOptions,
    RemoteDocument,
)
from dify_sync.domain.types import Sleep
from dify_sync.errors import KnowledgeClientError, RemotePayloadError

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """Retry policy for transient failures (5xx and network errors).

    The delay before attempt n+1 is base_delay * n.
    """

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        """Return the delay after the given zero-based failed attempt."""
        return self.base_delay * (attempt + 1)


def _normalize_base_url(base_url: str) -> str:
    """Strip a trailing slash and /v1, since request paths include /v1."""
    url = base_url.rstrip("/")
    if url.endswith("/v1"):
        url = url[: -len("/v1")]
    return url.rstrip("/")


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class KnowledgeClient:
    """HTTP client for the Knowledge API.

    Example:
        with KnowledgeClient.from_settings(settings) as client:
            documents = client.documents(dataset_id).list()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30,
        retry: RetryPolicy | None = None,
        page_size: int = 100,
        sleep: Sleep = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL, with or without trailing /v1
            api_key: Bearer credential, sent as-is
            timeout: Per-request timeout in seconds
            retry: Retry policy for transient failures
            page_size: Items requested per list page
            sleep: Sleep function used between retries
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = _normalize_base_url(base_url)
        self.retry = retry or RetryPolicy()
        self.page_size = page_size
        self._sleep = sleep
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.BaseTransport | None = None
    ) -> "KnowledgeClient":
        """Build a client from Settings.

        Raises:
            ValueError: If no API key is configured
        """
        if not settings.api_key:
            raise ValueError("DIFY_API_KEY environment variable is required")
        return cls(
            settings.api_url,
            settings.api_key,
            timeout=settings.api_timeout,
            retry=RetryPolicy(max_attempts=settings.max_retries, base_delay=settings.retry_delay),
            page_size=settings.page_size,
            transport=transport,
        )

    def __enter__(self) -> "KnowledgeClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def request(self, method: str, path: str, json: Any = None) -> Any:
        """Send a request, retrying transient failures.

        Returns:
            Parsed JSON body, or None for 204 responses and DELETE requests

        Raises:
            KnowledgeClientError: On a 4xx, or a 5xx after the last attempt
            httpx.TransportError: On a network failure after the last attempt
            RemotePayloadError: If a success response is not JSON
        """
        attempts = self.retry.max_attempts

        for attempt in range(attempts):
            is_last = attempt == attempts - 1
            try:
                response = self._http.request(method, path, json=json)
            except httpx.TransportError as e:
                if is_last:
                    raise
                delay = self.retry.delay_for(attempt)
                logger.warning("%s %s failed (%s), retrying in %.1fs", method, path, e, delay)
                self._sleep(delay)
                continue

            if response.is_error:
                error = KnowledgeClientError(
                    f"API error: {response.status_code} {response.reason_phrase}",
                    response.status_code,
                    _parse_body(response),
                )
                if error.is_transient and not is_last:
                    delay = self.retry.delay_for(attempt)
                    logger.warning(
                        "%s %s returned %d, retrying in %.1fs",
                        method,
                        path,
                        response.status_code,
                        delay,
                    )
                    self._sleep(delay)
                    continue
                raise error

            if response.status_code == 204 or method.upper() == "DELETE":
                return None

            try:
                return response.json()
            except ValueError as e:
                raise RemotePayloadError(f"{method} {path} returned non-JSON body") from e

        raise AssertionError("unreachable: retry loop exited without result")  # pragma: no cover

    def paginate(self, path: str) -> list[Any]:
        """Fetch every page of a list endpoint and concatenate the items."""
        items: list[Any] = []
        page = 1
        separator = "&" if "?" in path else "?"

        while True:
            body = self.request("GET", f"{path}{separator}page={page}&limit={self.page_size}")
            if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                raise RemotePayloadError(f"List response from {path} lacks a 'data' array")
            items.extend(body["data"])
            if not body.get("has_more"):
                return items
            page += 1

    # Datasets

    def list_datasets(self) -> list[Dataset]:
        """List every dataset visible to the API key."""
        return [_parse_dataset(item) for item in self.paginate("/v1/datasets")]

    def create_dataset(
        self,
        name: str,
        indexing_technique: str = "high_quality",
        description: str = "",
        permission: str = "only_me",
    ) -> Dataset:
        """Create an empty dataset."""
        body = self.request(
            "POST",
            "/v1/datasets",
            json={
                "name": name,
                "description": description,
                "indexing_technique": indexing_technique,
                "permission": permission,
            },
        )
        return _parse_dataset(body)

    def documents(self, dataset_id: str) -> "DocumentDirectory":
        """Return the document directory for one dataset."""
        return DocumentDirectory(self, dataset_id)


def _parse_dataset(payload: Any) -> Dataset:
    if not isinstance(payload, dict) or not payload.get("id") or not payload.get("name"):
        raise RemotePayloadError(f"Invalid dataset payload: {payload!r}")
    return Dataset(id=str(payload["id"]), name=str(payload["name"]))


def _unwrap_document(body: Any) -> RemoteDocument:
    """Extract the document from a create/update response envelope."""
    if not isinstance(body, dict) or "document" not in body:
        raise RemotePayloadError("Response lacks a 'document' object")
    return RemoteDocument.from_api(body["document"])


class DocumentDirectory:
    """Documents of a single dataset."""

    def __init__(self, client: KnowledgeClient, dataset_id: str):
        self.client = client
        self.dataset_id = dataset_id
        self._fingerprint_field_id: str | None = None

    @property
    def _base(self) -> str:
        return f"/v1/datasets/{self.dataset_id}"

    def list(self) -> list[RemoteDocument]:
        """List all documents, following pagination."""
        return [RemoteDocument.from_api(item) for item in self.client.paginate(f"{self._base}/documents")]

    def create(
        self, name: str, content: str, options: IndexingOptions | None = None
    ) -> RemoteDocument:
        """Create a document from text; indexing starts asynchronously."""
        options = options or IndexingOptions()
        process_rule = options.process_rule.model_dump(exclude_none=True)
        body = self.client.request(
            "POST",
            f"{self._base}/document/create_by_text",
            json={
                "name": name,
                "text": content,
                "indexing_technique": options.technique,
                "process_rule": process_rule,
            },
        )
        return _unwrap_document(body)

    def update(self, document_id: str, name: str, content: str) -> RemoteDocument:
        """Replace a document's text; its indexing status resets to pending."""
        body = self.client.request(
            "POST",
            f"{self._base}/documents/{document_id}/update_by_text",
            json={"name": name, "text": content},
        )
        return _unwrap_document(body)

    def delete(self, document_id: str) -> None:
        """Delete a document. A document that is already gone counts as deleted."""
        try:
            self.client.request("DELETE", f"{self._base}/documents/{document_id}")
        except KnowledgeClientError as e:
            if e.status_code != 404:
                raise
            logger.debug("Document %s already absent from %s", document_id, self.dataset_id)

    def record_fingerprint(self, document_id: str, value: str) -> None:
        """Store a content fingerprint in the document's metadata."""
        field_id = self._ensure_fingerprint_field()
        self.client.request(
            "POST",
            f"{self._base}/documents/metadata",
            json={
                "operation_data": [
                    {
                        "document_id": document_id,
                        "metadata_list": [
                            {"id": field_id, "name": FINGERPRINT_FIELD, "value": value}
                        ],
                    }
                ]
            },
        )

    def _ensure_fingerprint_field(self) -> str:
        """Return the metadata field id for fingerprints, creating the field if needed."""
        if self._fingerprint_field_id is not None:
            return self._fingerprint_field_id

        body = self.client.request("GET", f"{self._base}/metadata")
        fields = body.get("doc_metadata", []) if isinstance(body, dict) else []
        for field in fields:
            if isinstance(field, dict) and field.get("name") == FINGERPRINT_FIELD:
                self._fingerprint_field_id = str(field["id"])
                return self._fingerprint_field_id

        created = self.client.request(
            "POST",
            f"{self._base}/metadata",
            json={"type": "string", "name": FINGERPRINT_FIELD},
        )
        if not isinstance(created, dict) or not created.get("id"):
            raise RemotePayloadError("Metadata field creation returned no id")
        self._fingerprint_field_id = str(created["id"])
        return self._fingerprint_field_id
