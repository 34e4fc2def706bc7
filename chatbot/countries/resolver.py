from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from chatbot.core.cache import TTLCache
from chatbot.core.errors import CountryNotFoundError, RemoteFetchError, is_transient
from chatbot.core.formatting import format_country_report
from chatbot.core.models import CountryRecord, normalize_name
from chatbot.core.retry import RetryPolicy
from chatbot.countries.remote import RestCountriesClient
from chatbot.countries.store import CountryStore


logger = logging.getLogger(__name__)

PROPERTY_NOT_AVAILABLE = "Property not available"
COUNTRY_NOT_FOUND = "Country not found"
INFO_NOT_AVAILABLE = "Country information not available."

DEFAULT_RECORD_TTL = 12 * 60 * 60
DEFAULT_LIST_TTL = 24 * 60 * 60

_ALL_NAMES_KEY = "__all__"

_PROPERTIES: Dict[str, Callable[[CountryRecord], str]] = {
    "capital": lambda r: r.capital,
    "nationalanimal": lambda r: r.national_animal,
    "nationalflower": lambda r: r.national_flower,
    "population": lambda r: r.formatted_population,
    "area": lambda r: r.formatted_area,
    "region": lambda r: r.region or "Unknown",
    "languages": lambda r: ", ".join(r.languages),
    "currencies": lambda r: ", ".join(r.currencies),
}


def _unique_sorted(names: List[str]) -> List[str]:
    seen: Dict[str, str] = {}
    for name in names:
        seen.setdefault(name.casefold(), name)
    return sorted(seen.values(), key=str.casefold)


class CountryResolver:
    """Country lookups: remote API first, bundled data as fallback.

    Single-record fetches go through ``retry_policy`` and land in
    ``record_cache``; the remote name list lands in ``names_cache``. Remote
    problems never reach the caller, they only switch the lookup to the
    local store. ``remote`` may be None to run on local data alone.
    """

    def __init__(
        self,
        store: CountryStore,
        remote: Optional[RestCountriesClient] = None,
        *,
        record_cache: Optional[TTLCache[CountryRecord]] = None,
        names_cache: Optional[TTLCache[List[str]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.store = store
        self.remote = remote
        self.record_cache = record_cache if record_cache is not None else TTLCache(DEFAULT_RECORD_TTL)
        self.names_cache = names_cache if names_cache is not None else TTLCache(DEFAULT_LIST_TTL)
        self.retry_policy = retry_policy or RetryPolicy()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def resolve(self, name: Optional[str]) -> Optional[CountryRecord]:
        key = normalize_name(name)
        if not key:
            return None

        cached = self.record_cache.get(key)
        if cached is not None:
            return cached

        local = self.store.lookup(key)
        record = self._fetch_remote(key)
        if record is not None:
            record = record.with_cultural_fields_from(local)
        else:
            record = local

        if record is not None:
            self.record_cache.put(key, record)
        return record

    def _fetch_remote(self, key: str) -> Optional[CountryRecord]:
        if self.remote is None:
            return None
        remote = self.remote
        try:
            return self.retry_policy.call(
                lambda: remote.fetch_country(key),
                retry_on=is_transient,
                description=f"Country API request for {key!r}",
            )
        except CountryNotFoundError:
            logger.info("Country %r not found remotely, using local data", key)
        except RemoteFetchError as exc:
            logger.warning("Failed to fetch country data from API for %s: %s", key, exc)
        return None

    def get_property(self, name: Optional[str], property_key: str) -> str:
        record = self.resolve(name)
        if record is None:
            return COUNTRY_NOT_FOUND
        getter = _PROPERTIES.get((property_key or "").strip().lower())
        if getter is None:
            return PROPERTY_NOT_AVAILABLE
        return getter(record)

    def describe(self, name: Optional[str], detailed: bool = False) -> str:
        record = self.resolve(name)
        if record is None:
            return INFO_NOT_AVAILABLE
        return format_country_report(record, detailed)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _remote_names(self) -> List[str]:
        if self.remote is None:
            return []
        cached = self.names_cache.get(_ALL_NAMES_KEY)
        if cached is not None:
            return cached
        try:
            names = self.remote.list_names()
        except RemoteFetchError as exc:
            logger.warning("Failed to fetch country list from API: %s", exc)
            return []
        names = _unique_sorted(names)
        self.names_cache.put(_ALL_NAMES_KEY, names)
        return names

    def list_all(self) -> List[str]:
        names = self._remote_names()
        if names:
            return list(names)
        return self.store.names()

    def list_by_prefix(self, prefix: Optional[str]) -> List[str]:
        """Case-insensitive starts-with match over country names.

        Falls back to the local store when the API is unavailable or has no
        match. An empty list means nothing matched.
        """
        needle = normalize_name(prefix)
        if not needle:
            return []
        matches = [name for name in self._remote_names() if name.lower().startswith(needle)]
        if matches:
            return matches
        return _unique_sorted(self.store.names_with_prefix(needle))
