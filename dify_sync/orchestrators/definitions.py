"""Application definition export and import.

Definitions are YAML documents that may reference datasets by id. On
export, known dataset ids are rewritten to portable ``{{dataset:<name>}}``
placeholders; on import the placeholders are resolved back to ids of the
target instance.
"""

import logging
import re
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Protocol

import yaml
from pydantic import BaseModel

from dify_sync.domain.models import Dataset
from dify_sync.errors import (
    ConfigurationError,
    ConsoleClientError,
    DatasetNotFoundError,
    DifySyncError,
)
from dify_sync.operations.console import Application
from dify_sync.ui import Reporter

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
PLACEHOLDER_PATTERN = re.compile(r'"?\{\{dataset:([^}]+)\}\}"?')
DEFINITION_SUFFIXES = (".yml", ".yaml")
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class DefinitionConsole(Protocol):
    """The console operations definition transfer needs."""

    def list_applications(self) -> list[Application]: ...

    def export_definition(self, app_id: str, include_secret: bool = False) -> str: ...

    def import_definition(self, content: str) -> str: ...

    def replace_definition(self, app_id: str, content: str) -> None: ...


class ImportStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class ExportResult(BaseModel):
    app_id: str
    app_name: str
    filename: str
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class ImportResult(BaseModel):
    filename: str
    app_name: str = ""
    app_id: str | None = None
    status: ImportStatus
    error: str | None = None


def replace_dataset_ids_with_placeholders(content: str, datasets: Sequence[Dataset]) -> str:
    """Rewrite known dataset ids as quoted placeholders.

    The placeholder is quoted so YAML does not read the braces as a mapping.
    Ids that name no known dataset are left untouched.
    """
    names_by_id = {d.id.lower(): d.name for d in datasets}

    def substitute(match: re.Match[str]) -> str:
        name = names_by_id.get(match.group(0).lower())
        return f'"{{{{dataset:{name}}}}}"' if name else match.group(0)

    return UUID_PATTERN.sub(substitute, content)


def replace_placeholders_with_dataset_ids(content: str, datasets: Sequence[Dataset]) -> str:
    """Resolve quoted or bare placeholders back to dataset ids.

    Raises:
        DatasetNotFoundError: If a placeholder names an unknown dataset
    """
    ids_by_name = {d.name: d.id for d in datasets}

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in ids_by_name:
            raise DatasetNotFoundError(name)
        return ids_by_name[name]

    return PLACEHOLDER_PATTERN.sub(substitute, content)


def sanitize_filename(name: str) -> str:
    """Make an application name safe to use as a file name."""
    return re.sub(r"\s+", "-", UNSAFE_FILENAME_CHARS.sub("_", name)).lower()


def extract_app_name(content: str) -> str | None:
    """Return app.name from a definition, or None if it cannot be read."""
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError:
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("app"), dict):
        return None
    name = parsed["app"].get("name")
    return str(name) if name else None


def export_definitions(
    console: DefinitionConsole,
    output_dir: str | Path,
    include_secret: bool = False,
    datasets: Sequence[Dataset] = (),
    app_filter: Callable[[Application], bool] | None = None,
    reporter: Reporter | None = None,
) -> list[ExportResult]:
    """Export every application definition to ``<output_dir>/<name>.yml``.

    A failure to export one application is recorded and does not stop
    the others.
    """
    if reporter is None:
        reporter = Reporter()

    apps = console.list_applications()
    reporter.report_definition(f"Found {len(apps)} app(s).")
    if app_filter is not None:
        apps = [app for app in apps if app_filter(app)]
        reporter.report_definition(f"After filter: {len(apps)} app(s).")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    results = []

    for app in apps:
        filename = f"{sanitize_filename(app.name)}.yml"
        try:
            content = console.export_definition(app.id, include_secret)
            if datasets:
                content = replace_dataset_ids_with_placeholders(content, datasets)
            (output_dir / filename).write_text(content, encoding="utf-8")
        except (ConsoleClientError, OSError) as e:
            logger.error("Export of %s failed: %s", app.name, e)
            reporter.report_error(f"{app.name}: {e}")
            results.append(ExportResult(app_id=app.id, app_name=app.name, filename=filename, error=str(e)))
            continue

        reporter.report_definition(f"Exported: {app.name} → {filename}")
        results.append(ExportResult(app_id=app.id, app_name=app.name, filename=filename))

    return results


def import_definitions(
    console: DefinitionConsole | None,
    input_dir: str | Path,
    force: bool = False,
    dry_run: bool = False,
    datasets: Sequence[Dataset] = (),
    reporter: Reporter | None = None,
) -> list[ImportResult]:
    """Import every ``.yml``/``.yaml`` definition in input_dir.

    Applications are matched by ``app.name``. An existing application is
    skipped unless force is set, in which case its definition is replaced.
    A dry run needs no console and reports valid files as created.

    Raises:
        ConfigurationError: If input_dir does not exist, or no console is given outside a dry run
    """
    if reporter is None:
        reporter = Reporter()

    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise ConfigurationError(f"Input directory does not exist: {input_dir}")
    if console is None and not dry_run:
        raise ConfigurationError("A console client is required unless dry_run is set")

    files = sorted(p for p in input_dir.iterdir() if p.is_file() and p.suffix in DEFINITION_SUFFIXES)
    if not files:
        reporter.report_definition("No DSL files found in input directory.")
        return []

    existing: dict[str, Application] = {}
    if not dry_run:
        assert console is not None
        existing = {app.name: app for app in console.list_applications()}

    results = []
    for path in files:
        result = _import_one(console, path, existing, force, dry_run, datasets)
        if result.status is ImportStatus.FAILED:
            logger.error("Import of %s failed: %s", result.filename, result.error)
            reporter.report_error(f"{result.filename}: {result.error}")
        else:
            reporter.report_definition(_describe_import(result, dry_run))
        results.append(result)

    return results


def _import_one(
    console: DefinitionConsole | None,
    path: Path,
    existing: dict[str, Application],
    force: bool,
    dry_run: bool,
    datasets: Sequence[Dataset],
) -> ImportResult:
    filename = path.name
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ImportResult(
            filename=filename, status=ImportStatus.FAILED, error=f"Failed to read file: {e}"
        )

    app_name = extract_app_name(content)
    if not app_name:
        return ImportResult(
            filename=filename,
            status=ImportStatus.FAILED,
            error="Failed to extract app name from YAML",
        )

    if dry_run:
        return ImportResult(filename=filename, app_name=app_name, status=ImportStatus.CREATED)

    assert console is not None
    current = existing.get(app_name)
    if current is not None and not force:
        return ImportResult(
            filename=filename, app_name=app_name, app_id=current.id, status=ImportStatus.SKIPPED
        )

    try:
        content = replace_placeholders_with_dataset_ids(content, datasets)
        if current is not None:
            console.replace_definition(current.id, content)
            return ImportResult(
                filename=filename, app_name=app_name, app_id=current.id, status=ImportStatus.UPDATED
            )
        app_id = console.import_definition(content)
    except DifySyncError as e:
        return ImportResult(
            filename=filename, app_name=app_name, status=ImportStatus.FAILED, error=str(e)
        )

    return ImportResult(filename=filename, app_name=app_name, app_id=app_id, status=ImportStatus.CREATED)


def _describe_import(result: ImportResult, dry_run: bool) -> str:
    if dry_run:
        return f"Would create: {result.filename} -> {result.app_name}"
    if result.status is ImportStatus.SKIPPED:
        return f"Skipped: {result.filename} (already exists, use --force to overwrite)"
    verb = "Updated" if result.status is ImportStatus.UPDATED else "Created"
    return f"{verb}: {result.filename} -> {result.app_name} (app_id: {result.app_id})"
