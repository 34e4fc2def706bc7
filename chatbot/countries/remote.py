from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from chatbot.core.errors import CountryNotFoundError, RemoteFetchError
from chatbot.core.models import CountryRecord, RemoteCountry, RemoteNameEntry


logger = logging.getLogger(__name__)

TRANSIENT_STATUS = frozenset({429, 500, 502, 503, 504})


class RestCountriesClient:
    """Blocking client for a REST Countries v3.1 compatible API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise RemoteFetchError(f"Timed out calling {url}: {exc}", transient=True) from exc
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"HTTP error calling {url}: {exc}", transient=True) from exc

        status = response.status_code
        if status == 404:
            return None
        if not response.is_success:
            raise RemoteFetchError(
                f"Country API returned status {status} for {url}",
                transient=status in TRANSIENT_STATUS,
                status_code=status,
            )

        try:
            return response.json()
        except ValueError as exc:
            preview = (response.text or "")[:200]
            raise RemoteFetchError(f"Non-JSON response from {url}. Preview: {preview}") from exc

    def fetch_country(self, name: str) -> CountryRecord:
        """Fetch one country by full name; raises on any failure."""
        data = self._get_json(f"/name/{quote(name, safe='')}", {"fullText": "true"})
        if data is None:
            raise CountryNotFoundError(name)
        if not isinstance(data, list) or not data:
            raise RemoteFetchError(f"Empty or unexpected body for country {name!r}")
        try:
            return RemoteCountry.model_validate(data[0]).to_record(key=name)
        except ValidationError as exc:
            raise RemoteFetchError(f"Malformed country payload for {name!r}: {exc}") from exc

    def list_names(self) -> List[str]:
        """Common names of every country the API knows about."""
        data = self._get_json("/all", {"fields": "name"})
        if not isinstance(data, list) or not data:
            raise RemoteFetchError("Empty or unexpected body for country list")

        names: List[str] = []
        for item in data:
            try:
                names.append(RemoteNameEntry.model_validate(item).name.common)
            except ValidationError:
                logger.debug("Skipping country list entry without name.common: %r", item)
        if not names:
            raise RemoteFetchError("Country list contained no usable names")
        return names
