from __future__ import annotations

from typing import Any, Mapping, Optional, Union

# Per-request context handed through every stage. Only used for log
# correlation and passed verbatim to the metadata provider.
RequestContext = Union[Mapping[str, Any], Any, None]

# A record as received from upstream: a superset of the table's columns.
Record = Mapping[str, Any]


def request_id(req: RequestContext) -> Optional[str]:
    if req is None:
        return None
    if isinstance(req, Mapping):
        value = req.get("request_id")
    else:
        value = getattr(req, "request_id", None)
    return None if value is None else str(value)
