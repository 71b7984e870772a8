"""
Tests for ConfigResolver: key lookup with prefix/instance suffix, defaults,
and the at-most-once resolution guarantee under overlapping callers.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from sensordb.core.config_resolver import ConfigResolver, instance_suffix
from sensordb.core.errors import ConfigResolutionError
from sensordb.core.metadata import StaticMetadataProvider
from sensordb.models.config import METADATA_KEYS, ResolvedConfig


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("ingest", ""),
        ("ingest42", "42"),
        ("ingest4a2", "2"),
        ("sendToDatabase123", "123"),
        ("777", "777"),
        ("", ""),
        (None, ""),
    ],
)
def test_instance_suffix_takes_trailing_digit_run(name, expected) -> None:
    assert instance_suffix(name) == expected


def test_resolve_applies_defaults_and_overrides() -> None:
    provider = StaticMetadataProvider(
        {
            "sigfox-dbclient": "mysql",
            "sigfox-dbhost": "10.0.0.5",
            "sigfox-dbuser": None,
            "sigfox-dbtable": "readings",
            "unrelated": "ignored",
        }
    )
    resolver = ConfigResolver(provider)

    config = resolver.resolve(None, "sigfox-db", METADATA_KEYS)

    assert isinstance(config, ResolvedConfig)
    assert config.client == "mysql"
    assert config.host == "10.0.0.5"
    # None in the store keeps the default.
    assert config.user == "user"
    assert config.database == "sigfox"
    assert config.table == "readings"
    assert config.id_field == "uuid"
    assert config.password is None
    assert config.schema_version is None


def test_resolve_uses_instance_from_function_name() -> None:
    provider = StaticMetadataProvider(
        {
            "sigfox-dbhost": "default-host",
            "sigfox-dbhost42": "instance-host",
            "sigfox-dbversion42": 7.2,
        }
    )
    resolver = ConfigResolver(provider, function_name="sendToDatabase42")

    config = resolver.resolve(None, "sigfox-db", METADATA_KEYS)

    assert config.host == "instance-host"
    assert config.schema_version == "7.2"


def test_explicit_instance_overrides_function_name() -> None:
    provider = StaticMetadataProvider(
        {"sigfox-dbhost42": "from-name", "sigfox-dbhost7": "from-override"}
    )
    resolver = ConfigResolver(provider, function_name="sendToDatabase42")

    config = resolver.resolve(None, "sigfox-db", METADATA_KEYS, instance="7")

    assert config.host == "from-override"


def test_second_resolve_returns_cached_config_without_fetching() -> None:
    provider = StaticMetadataProvider({"sigfox-dbclient": "pg"})
    resolver = ConfigResolver(provider)

    first = resolver.resolve(None, "sigfox-db", METADATA_KEYS)
    second = resolver.resolve(None, "other-prefix", {"client": None})

    assert second is first
    assert provider.authorize_calls == 1
    assert provider.fetch_calls == 1
    assert resolver.resolved


def test_overlapping_resolves_share_one_fetch() -> None:
    entered = threading.Event()
    release = threading.Event()

    class SlowProvider(StaticMetadataProvider):
        def get_metadata(self, req, auth):
            entered.set()
            assert release.wait(5)
            return super().get_metadata(req, auth)

    provider = SlowProvider({"sigfox-dbclient": "pg"})
    resolver = ConfigResolver(provider)

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(resolver.resolve, None, "sigfox-db", METADATA_KEYS)
        assert entered.wait(5)
        second = pool.submit(resolver.resolve, None, "sigfox-db", METADATA_KEYS)
        time.sleep(0.05)
        assert not second.done()
        release.set()
        results = [first.result(5), second.result(5)]

    assert results[0] is results[1]
    assert provider.fetch_calls == 1


def test_failed_resolution_is_cached_and_not_retried() -> None:
    class BrokenProvider(StaticMetadataProvider):
        def authorize(self, req):
            super().authorize(req)
            raise RuntimeError("metadata server unreachable")

    provider = BrokenProvider({})
    resolver = ConfigResolver(provider)

    with pytest.raises(ConfigResolutionError) as first:
        resolver.resolve(None, "sigfox-db", METADATA_KEYS)
    with pytest.raises(ConfigResolutionError) as second:
        resolver.resolve(None, "sigfox-db", METADATA_KEYS)

    assert second.value is first.value
    assert isinstance(first.value.__cause__, RuntimeError)
    assert provider.authorize_calls == 1


def test_invalidate_allows_a_fresh_resolution() -> None:
    calls = {"n": 0}

    class FlakyProvider(StaticMetadataProvider):
        def get_metadata(self, req, auth):
            calls["n"] += 1
            if calls["n"] == 1:
                raise TimeoutError("transient")
            return super().get_metadata(req, auth)

    resolver = ConfigResolver(FlakyProvider({"sigfox-dbclient": "pg"}))

    with pytest.raises(ConfigResolutionError):
        resolver.resolve(None, "sigfox-db", METADATA_KEYS)

    resolver.invalidate()
    config = resolver.resolve(None, "sigfox-db", METADATA_KEYS)

    assert config.client == "pg"
    assert calls["n"] == 2


def test_non_mapping_metadata_is_a_resolution_error() -> None:
    class ListProvider(StaticMetadataProvider):
        def get_metadata(self, req, auth):
            return ["not", "a", "mapping"]

    resolver = ConfigResolver(ListProvider({}))

    with pytest.raises(ConfigResolutionError, match="expected a mapping"):
        resolver.resolve(None, "sigfox-db", METADATA_KEYS)


def test_redacted_config_hides_password() -> None:
    config = ResolvedConfig.from_metadata_values({"client": "pg", "password": "hunter2"})

    assert config.redacted()["password"] == "***"
    assert config.password == "hunter2"
