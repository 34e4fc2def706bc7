from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from chatbot.core.errors import DataLoadError
from chatbot.core.models import CountryRecord, normalize_name


logger = logging.getLogger(__name__)

CountryIndex = Dict[str, CountryRecord]

DEFAULT_DATA_PATH = Path(__file__).resolve().parent.parent / "data" / "countries_data.json"


class CountryStore:
    """Local fallback country data, loaded once from a bundled JSON file.

    The file maps country name -> record (camelCase keys). The index is
    read-only after ``load``.
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path) if path else DEFAULT_DATA_PATH
        self._index: CountryIndex = {}

    def load(self) -> CountryIndex:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise DataLoadError(f"Country dataset not found: {self.path}") from exc
        except (OSError, ValueError) as exc:
            raise DataLoadError(f"Country dataset unreadable ({self.path}): {exc}") from exc

        if not isinstance(raw, dict):
            raise DataLoadError(f"Country dataset must be a JSON object, got {type(raw).__name__}")

        index: CountryIndex = {}
        for key, payload in raw.items():
            if not isinstance(payload, dict):
                raise DataLoadError(f"Record for {key!r} is not an object")
            try:
                record = CountryRecord.model_validate({**payload, "name": key})
            except ValidationError as exc:
                raise DataLoadError(f"Invalid record for {key!r}: {exc}") from exc
            if record.name in index:
                raise DataLoadError(f"Duplicate country key: {record.name!r}")
            index[record.name] = record

        self._index = index
        return index

    def load_or_empty(self) -> CountryIndex:
        """Load the dataset, degrading to an empty index on failure."""
        try:
            index = self.load()
        except DataLoadError as exc:
            logger.error("Failed to load local country data: %s", exc)
            self._index = {}
            return self._index
        logger.info("Loaded %s countries from local data", len(index))
        return index

    @classmethod
    def from_records(cls, records: List[CountryRecord]) -> "CountryStore":
        store = cls()
        store._index = {record.name: record for record in records}
        return store

    def lookup(self, name: Optional[str]) -> Optional[CountryRecord]:
        return self._index.get(normalize_name(name))

    def names(self) -> List[str]:
        return sorted(record.common_name for record in self._index.values())

    def names_with_prefix(self, prefix: str) -> List[str]:
        prefix = normalize_name(prefix)
        return sorted(
            record.common_name
            for key, record in self._index.items()
            if key.startswith(prefix)
        )

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._index
