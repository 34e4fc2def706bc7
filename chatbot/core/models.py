from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from chatbot.core.formatting import UNKNOWN, format_area, format_population


_INTEGER_TEXT = re.compile(r"^\d+$")
_DECIMAL_TEXT = re.compile(r"^\d+(\.\d+)?$")

CULTURAL_FIELDS = ("national_animal", "national_flower", "national_bird", "national_anthem")


def parse_count(value: Any) -> int:
    """Strictly parse a non-negative integer count (population).

    Accepts JSON integers, integral floats and plain digit strings. Anything
    else (booleans, negatives, "1e6", "1,000", "12.5") is rejected.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("boolean is not a count")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("count must be non-negative")
        return value
    if isinstance(value, float):
        if value < 0 or not value.is_integer():
            raise ValueError(f"not a whole non-negative number: {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_TEXT.match(text):
            return int(text)
    raise ValueError(f"not a plain integer: {value!r}")


def parse_measure(value: Any) -> float:
    """Strictly parse a non-negative real measure (area)."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError("boolean is not a measure")
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"measure must be finite and non-negative: {value!r}")
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if _DECIMAL_TEXT.match(text):
            return float(text)
    raise ValueError(f"not a plain decimal number: {value!r}")


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class CountryRecord(BaseModel):
    """Country facts plus cultural symbols, keyed by lowercase name.

    Records are frozen; back-filling produces a new instance via
    ``with_cultural_fields_from``. Formatted population/area are computed on
    access and never stored.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    name: str
    common_name: str = ""
    official_name: Optional[str] = None
    capital: str = UNKNOWN
    region: Optional[str] = None
    subregion: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    currencies: List[str] = Field(default_factory=list)
    population: int = 0
    area: float = 0.0
    flag_url: Optional[str] = None
    coat_of_arms: Dict[str, str] = Field(default_factory=dict)
    borders: List[str] = Field(default_factory=list)
    timezones: List[str] = Field(default_factory=list)
    continents: List[str] = Field(default_factory=list)
    independent: Optional[bool] = None
    un_member: Optional[bool] = None

    national_animal: str = UNKNOWN
    national_flower: str = UNKNOWN
    national_bird: str = UNKNOWN
    national_anthem: str = UNKNOWN

    @model_validator(mode="before")
    @classmethod
    def _fill_common_name(cls, data: Any) -> Any:
        if isinstance(data, dict):
            if not (data.get("commonName") or data.get("common_name")) and data.get("name"):
                data = dict(data)
                data["commonName"] = str(data["name"]).strip().title()
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_key(cls, value: Any) -> str:
        key = normalize_name(value)
        if not key:
            raise ValueError("country name must not be blank")
        return key

    @field_validator("capital", *CULTURAL_FIELDS, mode="before")
    @classmethod
    def _default_unknown(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return UNKNOWN
        return str(value).strip()

    @field_validator("population", mode="before")
    @classmethod
    def _parse_population(cls, value: Any) -> int:
        return parse_count(value)

    @field_validator("area", mode="before")
    @classmethod
    def _parse_area(cls, value: Any) -> float:
        return parse_measure(value)

    @field_validator("continents", mode="before")
    @classmethod
    def _split_continents(cls, value: Any) -> Any:
        # the bundled dataset stores a single continent as plain text
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @computed_field(alias="formattedPopulation")  # type: ignore[misc]
    @property
    def formatted_population(self) -> str:
        return format_population(self.population)

    @computed_field(alias="formattedArea")  # type: ignore[misc]
    @property
    def formatted_area(self) -> str:
        return format_area(self.area)

    def with_cultural_fields_from(self, other: Optional["CountryRecord"]) -> "CountryRecord":
        """Copy cultural fields from ``other`` wherever this record lacks them."""
        if other is None:
            return self
        updates = {
            field: getattr(other, field)
            for field in CULTURAL_FIELDS
            if getattr(self, field) == UNKNOWN and getattr(other, field) != UNKNOWN
        }
        if not updates:
            return self
        return self.model_copy(update=updates)


# ---------------------------------------------------------------------------
# Remote payload decoding (REST Countries v3.1 shape)
# ---------------------------------------------------------------------------


class _RemoteModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RemoteName(_RemoteModel):
    common: str
    official: Optional[str] = None


class RemoteCurrency(_RemoteModel):
    name: Optional[str] = None
    symbol: Optional[str] = None


class RemoteNameEntry(_RemoteModel):
    """One element of ``/all?fields=name``."""

    name: RemoteName


class RemoteCountry(_RemoteModel):
    """One element of ``/name/{country}?fullText=true``.

    Missing optional keys default to empty values; a missing ``name.common``
    or an unparsable population/area rejects the payload.
    """

    name: RemoteName
    capital: List[str] = Field(default_factory=list)
    region: Optional[str] = None
    subregion: Optional[str] = None
    languages: Dict[str, str] = Field(default_factory=dict)
    currencies: Dict[str, RemoteCurrency] = Field(default_factory=dict)
    population: int = 0
    area: float = 0.0
    flags: Dict[str, Optional[str]] = Field(default_factory=dict)
    coat_of_arms: Dict[str, Optional[str]] = Field(default_factory=dict)
    borders: List[str] = Field(default_factory=list)
    timezones: List[str] = Field(default_factory=list)
    continents: List[str] = Field(default_factory=list)
    independent: Optional[bool] = None
    un_member: Optional[bool] = None

    @field_validator("population", mode="before")
    @classmethod
    def _parse_population(cls, value: Any) -> int:
        return parse_count(value)

    @field_validator("area", mode="before")
    @classmethod
    def _parse_area(cls, value: Any) -> float:
        return parse_measure(value)

    @field_validator(
        "capital", "borders", "timezones", "continents", "languages", "currencies", "flags", "coat_of_arms",
        mode="before",
    )
    @classmethod
    def _null_as_empty(cls, value: Any, info) -> Any:
        if value is None:
            return {} if info.field_name in {"languages", "currencies", "flags", "coat_of_arms"} else []
        return value

    def to_record(self, key: Optional[str] = None) -> CountryRecord:
        currencies = [
            currency.name or code for code, currency in self.currencies.items()
        ]
        return CountryRecord(
            name=key or self.name.common,
            common_name=self.name.common,
            official_name=self.name.official,
            capital=self.capital[0] if self.capital else UNKNOWN,
            region=self.region or None,
            subregion=self.subregion or None,
            languages=list(self.languages.values()),
            currencies=currencies,
            population=self.population,
            area=self.area,
            flag_url=self.flags.get("png") or self.flags.get("svg"),
            coat_of_arms={k: v for k, v in self.coat_of_arms.items() if v},
            borders=self.borders,
            timezones=self.timezones,
            continents=self.continents,
            independent=self.independent,
            un_member=self.un_member,
        )
