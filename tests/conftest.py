from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from chatbot.core.errors import CountryNotFoundError, RemoteFetchError
from chatbot.core.models import CountryRecord
from chatbot.core.retry import RetryPolicy
from chatbot.countries.resolver import CountryResolver
from chatbot.countries.store import CountryStore
from chatbot.engine import DialogueEngine


def make_record(name: str, **fields) -> CountryRecord:
    return CountryRecord(name=name, **fields)


@pytest.fixture
def local_records() -> List[CountryRecord]:
    return [
        make_record(
            "spain",
            common_name="Spain",
            capital="Madrid",
            region="Europe",
            subregion="Southern Europe",
            languages=["Spanish"],
            currencies=["Euro"],
            population=47_351_567,
            area=505_992,
            national_animal="Bull",
            national_flower="Red Carnation",
            national_bird="Spanish Imperial Eagle",
        ),
        make_record("france", common_name="France", capital="Paris", national_animal="Gallic Rooster"),
        make_record("finland", common_name="Finland", capital="Helsinki"),
        make_record("niger", common_name="Niger", capital="Niamey"),
        make_record("nigeria", common_name="Nigeria", capital="Abuja"),
    ]


@pytest.fixture
def store(local_records) -> CountryStore:
    return CountryStore.from_records(local_records)


class FakeRemote:
    """Scriptable stand-in for RestCountriesClient."""

    def __init__(
        self,
        records: Optional[Dict[str, CountryRecord]] = None,
        names: Optional[List[str]] = None,
        failures: Optional[List[Exception]] = None,
        list_error: Optional[Exception] = None,
    ):
        self.records = records or {}
        self.names = names
        self.failures = list(failures or [])
        self.list_error = list_error
        self.fetch_calls: List[str] = []
        self.list_calls = 0

    def fetch_country(self, name: str) -> CountryRecord:
        self.fetch_calls.append(name)
        if self.failures:
            raise self.failures.pop(0)
        if name not in self.records:
            raise CountryNotFoundError(name)
        return self.records[name]

    def list_names(self) -> List[str]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        if self.names is None:
            raise RemoteFetchError("no list configured", transient=True)
        return list(self.names)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def retry_policy(sleeps) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=1.0, multiplier=2.0, sleep=sleeps.append)


@pytest.fixture
def local_resolver(store, retry_policy) -> CountryResolver:
    return CountryResolver(store, None, retry_policy=retry_policy)


@pytest.fixture
def engine(local_resolver) -> DialogueEngine:
    return DialogueEngine(local_resolver)
