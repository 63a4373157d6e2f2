"""
File Record Store: infrastructure adapter for JSON / YAML record files.

A file holds either a single progress record or a mapping of
item id -> record. Files ending in .yaml/.yml are YAML, anything else JSON.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from cadence.domain.scheduling.models import Progress
from cadence.domain.scheduling.ports import RecordStore

logger = logging.getLogger(__name__)

SINGLE_RECORD_ID = "item"

YAML_SUFFIXES = {".yaml", ".yml"}


class RecordFileError(Exception):
    """Raised when a record file cannot be read or parsed."""


def read_document(path: Path) -> Any:
    """Parse a JSON or YAML file (by suffix)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RecordFileError(f"Cannot read {path}: {e}") from e

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text) if text.strip() else None
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise RecordFileError(f"Cannot parse {path}: {e}") from e


def _is_collection(doc: Mapping) -> bool:
    # A single record has scalar / list values; a collection maps ids to records.
    # An id with no value (`beta:` in YAML) is an empty record.
    return all(v is None or isinstance(v, Mapping) for v in doc.values())


class FileRecordStore(RecordStore):
    """
    Stores progress records in one JSON or YAML document.

    Single-record files are exposed under ``SINGLE_RECORD_ID`` and written
    back in the same single-record shape.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.single = False

    def load(self) -> dict[str, dict]:
        if not self.path.exists():
            logger.info(f"{self.path} does not exist yet; starting empty")
            return {}

        doc = read_document(self.path)
        if doc is None:
            return {}
        if not isinstance(doc, Mapping):
            raise RecordFileError(f"{self.path} must contain a mapping, got {type(doc).__name__}")

        if _is_collection(doc):
            self.single = False
            return {str(k): dict(v or {}) for k, v in doc.items()}

        self.single = True
        return {SINGLE_RECORD_ID: dict(doc)}

    def save(self, records: Mapping[str, Progress | dict]) -> None:
        plain = {
            item_id: rec.to_dict() if isinstance(rec, Progress) else dict(rec)
            for item_id, rec in records.items()
        }
        doc: Any = plain
        if self.single and set(plain) == {SINGLE_RECORD_ID}:
            doc = plain[SINGLE_RECORD_ID]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.suffix.lower() in YAML_SUFFIXES:
            text = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
        else:
            text = json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
        self.path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote {len(plain)} record(s) to {self.path}")
