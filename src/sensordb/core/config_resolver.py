"""
Resolution of per-deployment configuration from a metadata provider.

Several deployments of the same ingestion function can share one metadata
namespace by appending an instance suffix to every key: a function named
``sendToDatabase2`` reads ``sigfox-dbclient2``, ``sigfox-dbhost2`` and so on.
Resolution happens at most once per resolver; overlapping callers share the
same in-flight lookup.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sensordb.core.errors import ConfigResolutionError
from sensordb.core.metadata import MetadataProvider
from sensordb.core.single_flight import SingleFlight
from sensordb.models.config import ResolvedConfig
from sensordb.types import RequestContext, request_id

logger = logging.getLogger(__name__)


def instance_suffix(name: Optional[str]) -> str:
    """
    Return the trailing run of decimal digits in `name`.

    ``"ingest42"`` gives ``"42"``, ``"ingest4a2"`` gives ``"2"`` and
    ``"ingest"`` gives ``""``.
    """
    if not name:
        return ""
    end = len(name)
    start = end
    while start > 0 and "0" <= name[start - 1] <= "9":
        start -= 1
    return name[start:end]


class ConfigResolver:
    def __init__(
        self,
        provider: MetadataProvider,
        *,
        function_name: str = "",
    ) -> None:
        self.provider = provider
        self.function_name = function_name
        self._flight: SingleFlight[ResolvedConfig] = SingleFlight()

    def resolve(
        self,
        req: RequestContext,
        key_prefix: str,
        key_defaults: Mapping[str, Any],
        instance: Optional[str] = None,
    ) -> ResolvedConfig:
        """
        Resolve the configuration, or return the cached outcome.

        Only the first call consults the provider; later calls get the same
        `ResolvedConfig` instance (or the same `ConfigResolutionError`)
        regardless of their arguments.
        """
        future, owner = self._flight.claim()
        if owner:
            self._flight.settle(
                future,
                lambda: self._fetch(req, key_prefix, key_defaults, instance),
            )
        return future.result()

    def _fetch(
        self,
        req: RequestContext,
        key_prefix: str,
        key_defaults: Mapping[str, Any],
        instance: Optional[str],
    ) -> ResolvedConfig:
        suffix = instance if instance else instance_suffix(self.function_name)
        logger.info(
            "[sensordb] get_metadata_config request=%s prefix=%s instance=%r",
            request_id(req),
            key_prefix,
            suffix,
        )
        try:
            auth = self.provider.authorize(req)
            metadata = self.provider.get_metadata(req, auth)
        except Exception as exc:
            logger.error(
                "[sensordb] get_metadata_config failed request=%s prefix=%s instance=%r: %s",
                request_id(req),
                key_prefix,
                suffix,
                exc,
            )
            raise ConfigResolutionError(
                f"Metadata lookup failed for prefix {key_prefix!r}: {exc}"
            ) from exc

        if not isinstance(metadata, Mapping):
            raise ConfigResolutionError(
                f"Metadata provider returned {type(metadata).__name__}, expected a mapping."
            )

        values = dict(key_defaults)
        for key in values:
            found = metadata.get(f"{key_prefix}{key}{suffix}")
            if found is not None:
                values[key] = found

        try:
            config = ResolvedConfig.from_metadata_values(values)
        except ValueError as exc:
            raise ConfigResolutionError(f"Invalid configuration: {exc}") from exc
        logger.info(
            "[sensordb] get_metadata_config resolved request=%s config=%s",
            request_id(req),
            config.redacted(),
        )
        return config

    @property
    def resolved(self) -> bool:
        return self._flight.settled

    def invalidate(self) -> None:
        """Forget the cached outcome so the next call consults the provider again."""
        self._flight.reset()
