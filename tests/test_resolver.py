from chatbot.core.cache import TTLCache
from chatbot.core.errors import RemoteFetchError
from chatbot.countries.resolver import CountryResolver
from tests.conftest import FakeRemote, make_record


REMOTE_SPAIN = make_record(
    "spain",
    common_name="Spain",
    capital="Madrid",
    region="Europe",
    population=48_000_000,
    area=505_990,
    languages=["Spanish"],
    currencies=["Euro"],
)


def transient():
    return RemoteFetchError("connection reset", transient=True)


def test_remote_record_wins_and_is_enriched_with_local_culture(store, retry_policy):
    remote = FakeRemote(records={"spain": REMOTE_SPAIN})
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    record = resolver.resolve("  SPAIN ")

    assert remote.fetch_calls == ["spain"]
    assert record.population == 48_000_000
    assert record.national_animal == "Bull"
    assert record.national_flower == "Red Carnation"


def test_transient_failures_then_success_returns_remote_record(store, retry_policy, sleeps):
    remote = FakeRemote(records={"spain": REMOTE_SPAIN}, failures=[transient(), transient()])
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    record = resolver.resolve("spain")

    assert len(remote.fetch_calls) == 3
    assert sleeps == [1.0, 2.0]
    assert record.population == 48_000_000


def test_exhausted_retries_fall_back_to_local_data(store, retry_policy, sleeps):
    remote = FakeRemote(records={"spain": REMOTE_SPAIN}, failures=[transient(), transient(), transient()])
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    record = resolver.resolve("spain")

    assert len(remote.fetch_calls) == 3
    assert record.population == 47_351_567
    assert record.capital == "Madrid"


def test_not_found_remotely_falls_back_without_retry(store, retry_policy, sleeps):
    remote = FakeRemote()
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    assert resolver.resolve("france").capital == "Paris"
    assert remote.fetch_calls == ["france"]
    assert sleeps == []


def test_non_transient_failure_falls_back_immediately(store, retry_policy):
    remote = FakeRemote(failures=[RemoteFetchError("malformed body")])
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    assert resolver.resolve("spain").population == 47_351_567
    assert len(remote.fetch_calls) == 1


def test_unknown_everywhere_is_absent(store, retry_policy):
    resolver = CountryResolver(store, FakeRemote(), retry_policy=retry_policy)

    assert resolver.resolve("atlantis") is None
    assert resolver.resolve("   ") is None


def test_results_are_cached_by_normalized_name(store, retry_policy):
    remote = FakeRemote(records={"spain": REMOTE_SPAIN})
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    first = resolver.resolve("Spain")
    second = resolver.resolve("spain ")

    assert first is second
    assert remote.fetch_calls == ["spain"]


def test_cache_expiry_triggers_new_fetch(store, retry_policy):
    now = [0.0]
    remote = FakeRemote(records={"spain": REMOTE_SPAIN})
    resolver = CountryResolver(
        store, remote, retry_policy=retry_policy, record_cache=TTLCache(60, clock=lambda: now[0])
    )

    resolver.resolve("spain")
    now[0] = 61
    resolver.resolve("spain")

    assert remote.fetch_calls == ["spain", "spain"]


def test_prefix_listing_is_case_insensitive(store, retry_policy):
    remote = FakeRemote(names=["France", "Finland", "Fiji", "Spain"])
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    assert resolver.list_by_prefix("Fr") == resolver.list_by_prefix("fr") == ["France"]
    assert resolver.list_by_prefix("F") == ["Fiji", "Finland", "France"]
    assert remote.list_calls == 1


def test_prefix_listing_falls_back_to_local_without_retry(store, retry_policy, sleeps):
    remote = FakeRemote(list_error=transient())
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    assert resolver.list_by_prefix("nig") == ["Niger", "Nigeria"]
    assert remote.list_calls == 1
    assert sleeps == []


def test_prefix_listing_uses_local_when_remote_has_no_match(store, retry_policy):
    remote = FakeRemote(names=["Spain"])
    resolver = CountryResolver(store, remote, retry_policy=retry_policy)

    assert resolver.list_by_prefix("fin") == ["Finland"]
    assert resolver.list_by_prefix("xyz") == []
    assert resolver.list_by_prefix("") == []


def test_list_all_prefers_remote_and_falls_back(store, retry_policy):
    assert CountryResolver(store, FakeRemote(names=["Spain", "Chad", "spain"]), retry_policy=retry_policy).list_all() == [
        "Chad",
        "Spain",
    ]
    assert CountryResolver(store, FakeRemote(), retry_policy=retry_policy).list_all() == [
        "Finland",
        "France",
        "Niger",
        "Nigeria",
        "Spain",
    ]


def test_get_property(local_resolver):
    assert local_resolver.get_property("Spain", "capital") == "Madrid"
    assert local_resolver.get_property("Spain", "NationalAnimal") == "Bull"
    assert local_resolver.get_property("Spain", "nationalflower") == "Red Carnation"
    assert local_resolver.get_property("Spain", "population") == "47.4M"
    assert local_resolver.get_property("Spain", "area") == "505,992 km²"
    assert local_resolver.get_property("Spain", "region") == "Europe"
    assert local_resolver.get_property("Spain", "languages") == "Spanish"
    assert local_resolver.get_property("Spain", "currencies") == "Euro"


def test_get_property_is_permissive(local_resolver):
    assert local_resolver.get_property("Spain", "anthem") == "Property not available"
    assert local_resolver.get_property("Atlantis", "capital") == "Country not found"


def test_describe(local_resolver):
    assert local_resolver.describe("Spain").startswith("Information about Spain:")
    assert local_resolver.describe("Atlantis") == "Country information not available."
