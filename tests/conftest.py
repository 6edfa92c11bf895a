"""Configure tests."""

import itertools
import json
from pathlib import Path

import httpx
import pytest

from dify_sync.config import Settings
from dify_sync.domain.models import DiffAction, DiffEntry, IndexingStatus, RemoteDocument
from dify_sync.domain.services import fingerprint
from dify_sync.ui import Reporter


class FakeDify:
    """In-memory Knowledge API served through httpx.MockTransport.

    Newly created or updated documents report "indexing" on the first
    listing and "completed" on the next one.
    """

    def __init__(self, page_size_cap: int = 100):
        self.datasets: dict[str, dict] = {}
        self.documents: dict[str, dict[str, dict]] = {}
        self.metadata_fields: dict[str, list[dict]] = {}
        self.requests: list[tuple[str, str]] = []
        self.fail_indexing: set[str] = set()
        self.page_size_cap = page_size_cap
        self._ids = (f"{n:08x}-0000-4000-8000-{n:012x}" for n in itertools.count(1))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def add_dataset(self, name: str) -> str:
        dataset_id = next(self._ids)
        self.datasets[dataset_id] = {"id": dataset_id, "name": name}
        self.documents[dataset_id] = {}
        self.metadata_fields[dataset_id] = []
        return dataset_id

    def add_document(
        self,
        dataset_id: str,
        name: str,
        text: str = "",
        status: str = "completed",
        stored_hash: str | None = None,
    ) -> str:
        doc_id = next(self._ids)
        metadata = [{"id": "field-1", "name": "source_hash", "value": stored_hash}] if stored_hash else []
        self.documents[dataset_id][doc_id] = {
            "id": doc_id,
            "name": name,
            "text": text,
            "indexing_status": status,
            "error": None,
            "doc_metadata": metadata,
        }
        return doc_id

    def names(self, dataset_id: str) -> list[str]:
        return sorted(doc["name"] for doc in self.documents[dataset_id].values())

    def mutations(self) -> list[tuple[str, str]]:
        return [(m, p) for m, p in self.requests if m != "GET" and "/metadata" not in p]

    def _page(self, request: httpx.Request, items: list) -> httpx.Response:
        page = int(request.url.params.get("page", 1))
        limit = min(int(request.url.params.get("limit", 20)), self.page_size_cap)
        start = (page - 1) * limit
        return httpx.Response(
            200,
            json={
                "data": items[start : start + limit],
                "has_more": start + limit < len(items),
                "page": page,
                "limit": limit,
                "total": len(items),
            },
        )

    def _public(self, doc: dict) -> dict:
        return {key: value for key, value in doc.items() if key != "text"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        parts = request.url.path.strip("/").split("/")
        self.requests.append((method, request.url.path))

        if parts[:2] != ["v1", "datasets"]:
            return httpx.Response(404, json={"message": "not found"})

        if len(parts) == 2:
            if method == "GET":
                return self._page(request, list(self.datasets.values()))
            payload = _json(request.content)
            dataset_id = self.add_dataset(payload["name"])
            return httpx.Response(200, json=self.datasets[dataset_id])

        dataset_id = parts[2]
        if dataset_id not in self.datasets:
            return httpx.Response(404, json={"message": "dataset not found"})
        docs = self.documents[dataset_id]
        rest = parts[3:]

        if rest == ["documents"] and method == "GET":
            response = self._page(request, [self._public(d) for d in docs.values()])
            self._advance_indexing(docs)
            return response

        if rest == ["document", "create_by_text"]:
            payload = _json(request.content)
            doc_id = self.add_document(dataset_id, payload["name"], payload["text"], status="indexing")
            return httpx.Response(200, json={"document": self._public(docs[doc_id]), "batch": "b1"})

        if len(rest) == 3 and rest[0] == "documents" and rest[2] == "update_by_text":
            doc = docs.get(rest[1])
            if doc is None:
                return httpx.Response(404, json={"message": "document not found"})
            payload = _json(request.content)
            doc.update(name=payload["name"], text=payload["text"], indexing_status="indexing")
            return httpx.Response(200, json={"document": self._public(doc), "batch": "b2"})

        if rest == ["documents", "metadata"] and method == "POST":
            for operation in _json(request.content)["operation_data"]:
                doc = docs[operation["document_id"]]
                doc["doc_metadata"] = [
                    {"id": m["id"], "name": m["name"], "value": m["value"]}
                    for m in operation["metadata_list"]
                ]
            return httpx.Response(200, json={"result": "success"})

        if len(rest) == 2 and rest[0] == "documents" and method == "DELETE":
            if docs.pop(rest[1], None) is None:
                return httpx.Response(404, json={"message": "document not found"})
            return httpx.Response(204)

        if rest == ["metadata"]:
            fields = self.metadata_fields[dataset_id]
            if method == "GET":
                return httpx.Response(200, json={"doc_metadata": fields, "built_in_field_enabled": False})
            payload = _json(request.content)
            field = {"id": f"field-{len(fields) + 1}", "name": payload["name"], "type": payload["type"]}
            fields.append(field)
            return httpx.Response(201, json=field)

        return httpx.Response(404, json={"message": "route not found"})

    def _advance_indexing(self, docs: dict[str, dict]) -> None:
        for doc in docs.values():
            if doc["indexing_status"] == "indexing":
                if doc["name"] in self.fail_indexing:
                    doc.update(indexing_status="error", error="embedding failed")
                else:
                    doc["indexing_status"] = "completed"


def _json(content: bytes) -> dict:
    return json.loads(content)


@pytest.fixture
def fake_dify():
    """Create an empty in-memory Knowledge API."""
    return FakeDify()


@pytest.fixture
def silent_reporter():
    """Reporter that prints nothing."""
    return Reporter(silent=True)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment."""
    return Settings(
        _env_file=None,
        api_url="http://dify.test/v1",
        api_key="dataset-test-key",
        console_url="http://dify.test",
        session_file=tmp_path / "auth.json",
        sync_config_file=tmp_path / "sync.yaml",
        dsl_dir=tmp_path / "dsl",
        indexing_poll_interval=0.01,
        retry_delay=0,
    )


@pytest.fixture
def markdown_dir(tmp_path):
    """Factory writing markdown files into a fresh directory."""

    def _make(files: dict[str, str], name: str = "docs") -> Path:
        directory = tmp_path / name
        directory.mkdir(parents=True, exist_ok=True)
        for filename, content in files.items():
            (directory / filename).write_text(content, encoding="utf-8")
        return directory

    return _make


@pytest.fixture
def remote_doc():
    """Factory for RemoteDocument instances."""

    def _make(
        name: str,
        doc_id: str | None = None,
        status: IndexingStatus = IndexingStatus.COMPLETED,
        content: str | None = None,
        error: str | None = None,
    ) -> RemoteDocument:
        return RemoteDocument(
            id=doc_id or f"id-{name}",
            name=name,
            indexing_status=status,
            error=error,
            stored_fingerprint=fingerprint(content) if content is not None else None,
        )

    return _make


@pytest.fixture
def diff_entry():
    """Factory for DiffEntry instances."""

    def _make(action: DiffAction, filename: str, reason: str | None = None) -> DiffEntry:
        return DiffEntry(action=action, filename=filename, remote_id=f"id-{filename}", reason=reason)

    return _make
