"""Configuration with environment variable support."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dify_sync.domain.models import IndexingOptions, ProcessRule
from dify_sync.errors import ConfigurationError


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables.

    Loads from environment (DIFY_*), .env file, or defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Knowledge API
    api_url: str = "http://localhost/v1"
    api_key: str | None = None
    api_timeout: int = 30

    # Console
    console_url: str = "http://localhost"
    email: str | None = None
    password: str | None = None

    # Files
    sync_config_file: Path = Path("dify-settings/sync.yaml")
    dsl_dir: Path = Path("dify-settings/dsl")
    session_file: Path = Path(".dify-auth-state.json")

    # Sync behaviour
    batch_size: int = Field(default=10, ge=1)
    indexing_poll_interval: float = Field(default=2.0, gt=0)
    indexing_timeout: float = Field(default=600.0, gt=0)
    record_fingerprints: bool = True

    # HTTP
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    page_size: int = Field(default=100, ge=1)

    @field_validator("api_key", "email", "password", mode="before")
    @classmethod
    def parse_null_credential(cls, v: str | None) -> str | None:
        """Convert blank or 'null' strings to None."""
        if isinstance(v, str) and v.strip().lower() in ("null", "none", ""):
            return None
        return v


class DatasetSpec(BaseModel):
    """One entry of the sync configuration file."""

    path: Path
    dataset_id: str | None = None
    dataset_name: str | None = None
    create_if_missing: bool = False
    indexing_technique: Literal["high_quality", "economy"] = "high_quality"
    process_rule: ProcessRule = Field(default_factory=ProcessRule)

    @model_validator(mode="after")
    def exactly_one_identity(self) -> "DatasetSpec":
        """Require either dataset_id or dataset_name, not both."""
        if bool(self.dataset_id) == bool(self.dataset_name):
            raise ValueError("exactly one of 'dataset_id' or 'dataset_name' is required")
        return self

    @property
    def label(self) -> str:
        """Human-readable dataset identity."""
        return self.dataset_name or self.dataset_id or ""

    @property
    def indexing_options(self) -> IndexingOptions:
        return IndexingOptions(technique=self.indexing_technique, process_rule=self.process_rule)


class SyncConfig(BaseModel):
    """Declarative list of datasets to synchronize."""

    datasets: list[DatasetSpec]


def load_sync_config(path: str | Path) -> SyncConfig:
    """Load and validate the YAML sync configuration.

    Args:
        path: Path to the sync YAML file

    Returns:
        Validated SyncConfig

    Raises:
        ConfigurationError: If the file is missing, unparsable, or malformed
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("datasets"), list):
        raise ConfigurationError("Invalid config: 'datasets' array is required")

    try:
        return SyncConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e
