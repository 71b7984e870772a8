"""
Metadata providers: where deployment configuration key/value pairs come from.

The resolver only needs `authorize()` followed by `get_metadata()`, and only
performs exact-key lookups on the returned mapping. Cloud deployments plug in
their own provider (a remote key/value store); the environment provider
covers Lambda-style deployments where the settings are environment variables.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class MetadataProvider(Protocol):
    def authorize(self, req: Any) -> Any: ...

    def get_metadata(self, req: Any, auth: Any) -> Mapping[str, Any]: ...


class EnvironmentMetadataProvider:
    """
    Serves the process environment as metadata.

    Environment variable names cannot contain hyphens, so every variable is
    also exposed under a hyphenated alias: `sigfox_dbclient` answers lookups
    for both `sigfox_dbclient` and `sigfox-dbclient`.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def authorize(self, req: Any) -> None:
        return None

    def get_metadata(self, req: Any, auth: Any) -> Dict[str, str]:
        environ = os.environ if self._environ is None else self._environ
        metadata: Dict[str, str] = {}
        for key, value in environ.items():
            metadata.setdefault(key.replace("_", "-"), value)
        # Exact names win over aliases.
        metadata.update(environ)
        return metadata


class StaticMetadataProvider:
    """Serves a fixed mapping. Counts calls, which makes it handy in tests."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self.values = dict(values)
        self.authorize_calls = 0
        self.fetch_calls = 0

    def authorize(self, req: Any) -> str:
        self.authorize_calls += 1
        return "static"

    def get_metadata(self, req: Any, auth: Any) -> Dict[str, Any]:
        self.fetch_calls += 1
        return dict(self.values)
