"""trx_import.config

Run parameters for the transaction import, with an optional YAML file.

File layout (every key optional):

    import_transactions:
      input_resource: "file:/data/transactions-source.txt"
      chunk_size: 100
      skip_limit: 500
      rejects_path: "./artifacts/rejects/transaction_import_rejects.csv"
      report_dir: "./artifacts/reports"

Precedence: built-in defaults < YAML file < CLI flags.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


CONFIG_SECTION = "import_transactions"

DEFAULT_INPUT_RESOURCE = "file:/data/transactions-source.txt"
DEFAULT_REJECTS_PATH = "./artifacts/rejects/transaction_import_rejects.csv"
DEFAULT_REPORT_DIR = "./artifacts/reports"

_INT_KEYS = frozenset({"chunk_size", "skip_limit"})
_STR_KEYS = frozenset({"input_resource", "rejects_path", "report_dir"})


class ConfigValidationError(ValueError):
    """Raised when a config file or override fails validation."""


@dataclass(frozen=True)
class ImportConfig:
    input_resource: str = DEFAULT_INPUT_RESOURCE
    chunk_size: int = 100
    skip_limit: int = 500
    rejects_path: str = DEFAULT_REJECTS_PATH
    report_dir: str = DEFAULT_REPORT_DIR
    dry_run: bool = False

    def with_overrides(self, **overrides: Any) -> ImportConfig:
        """Return a copy with every non-None override applied and validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        updated = dataclasses.replace(self, **changes)
        validate_config(dataclasses.asdict(updated))
        return updated


def validate_config(data: dict[str, Any]) -> None:
    """Raise ConfigValidationError if data does not match the schema.

    Validates:
      - no unknown keys
      - string keys are non-empty strings
      - chunk_size >= 1, skip_limit >= 0 (integers, not bools)
    """
    known = {f.name for f in dataclasses.fields(ImportConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigValidationError(f"unknown config keys: {sorted(unknown)}")

    for key in _STR_KEYS & set(data):
        value = data[key]
        if not isinstance(value, str) or not value.strip():
            raise ConfigValidationError(f"{key} must be a non-empty string, got {value!r}")

    for key in _INT_KEYS & set(data):
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigValidationError(f"{key} must be an integer, got {value!r}")

    if "chunk_size" in data and data["chunk_size"] < 1:
        raise ConfigValidationError(f"chunk_size must be >= 1, got {data['chunk_size']}")
    if "skip_limit" in data and data["skip_limit"] < 0:
        raise ConfigValidationError(f"skip_limit must be >= 0, got {data['skip_limit']}")

    if "dry_run" in data and not isinstance(data["dry_run"], bool):
        raise ConfigValidationError(f"dry_run must be a boolean, got {data['dry_run']!r}")


def load_config(yaml_path: Path | None) -> ImportConfig:
    """Load an ImportConfig from a YAML file, or return defaults for None.

    Raises:
        ConfigValidationError: malformed file or invalid values.
        FileNotFoundError: If the YAML file does not exist.
    """
    if yaml_path is None:
        return ImportConfig()
    raw = yaml_path.read_text(encoding="utf-8")
    try:
        doc = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"invalid YAML in {yaml_path}: {exc}") from exc
    if not isinstance(doc, dict):
        raise ConfigValidationError(f"{yaml_path}: top level must be a mapping")
    section = doc.get(CONFIG_SECTION, {}) or {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"{yaml_path}: '{CONFIG_SECTION}' must be a mapping")
    validate_config(section)
    return ImportConfig(**section)
