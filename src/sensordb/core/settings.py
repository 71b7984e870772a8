from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Sequence


def _env_first(names: Sequence[str]) -> str:
    for name in names:
        raw = os.getenv(name, "")
        if raw != "":
            return raw
    return ""


def _env_bool(names: Sequence[str], default: bool) -> bool:
    raw = _env_first(names)
    if raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_str(names: Sequence[str], default: Optional[str]) -> Optional[str]:
    raw = _env_first(names).strip()
    if raw == "":
        return default
    return raw


@dataclass(frozen=True)
class SensorDBSettings:
    destroy_pool: bool = False
    metadata_prefix: str = "sigfox-db"
    default_database: str = "sigfox"
    default_table: str = "sensordata"
    function_name: str = ""
    instance: Optional[str] = None
    pool_pre_ping: bool = True

    @classmethod
    def from_env(cls) -> "SensorDBSettings":
        return cls(
            # DESTROYPOOL is the name used by existing Lambda deployments.
            destroy_pool=_env_bool(("DESTROYPOOL", "SENSORDB_DESTROY_POOL"), False),
            metadata_prefix=_env_str(("SENSORDB_METADATA_PREFIX",), "sigfox-db")
            or "sigfox-db",
            default_database=_env_str(("SENSORDB_DEFAULT_DATABASE",), "sigfox")
            or "sigfox",
            default_table=_env_str(("SENSORDB_DEFAULT_TABLE",), "sensordata")
            or "sensordata",
            function_name=_env_str(
                (
                    "SENSORDB_FUNCTION_NAME",
                    "AWS_LAMBDA_FUNCTION_NAME",
                    "FUNCTION_NAME",
                    "K_SERVICE",
                ),
                "",
            )
            or "",
            instance=_env_str(("SENSORDB_INSTANCE",), None),
            pool_pre_ping=_env_bool(("SENSORDB_POOL_PRE_PING",), True),
        )
