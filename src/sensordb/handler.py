"""
Entry points for serverless hosts.

The message shape is the one used by the upstream Sigfox pipeline:
``{"device": "2C1C85", "body": {...}, ...}``. Only ``body`` is stored; the
whole message is returned so the next stage receives it untouched.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from sensordb.runtime import SensorSink, get_default_sink
from sensordb.types import RequestContext


def handle_message(
    message: Mapping[str, Any],
    sink: Optional[SensorSink] = None,
    req: RequestContext = None,
) -> Mapping[str, Any]:
    body = message.get("body")
    if body is None:
        body = {}
    if not isinstance(body, Mapping):
        raise ValueError(
            f"Message body must be a mapping, got {type(body).__name__}."
        )
    device = message.get("device") or body.get("device")
    target = sink if sink is not None else get_default_sink()
    return target.ingest(device, body, passthrough=message, req=req)


def lambda_handler(event: Mapping[str, Any], context: Any = None) -> Mapping[str, Any]:
    """AWS Lambda handler. The process-wide sink is reused while the container stays warm."""
    req = {"request_id": getattr(context, "aws_request_id", None)}
    return handle_message(event, req=req)
