#!/usr/bin/env python3
"""
sqlbeat configuration

YAML layout:

    period: 10s
    delta_wildcard: __DELTA
    delta_key_wildcard: __DELTAKEY
    output:
      type: http
      url: https://analytics:9200/sqlbeat/_doc
    servers:
      db01:
        hostname: 10.0.0.5
        username: sqlbeat_user
        encrypted_password: 2321f38819cb...
        queries:
          - query: SHOW GLOBAL STATUS LIKE 'Com_select'
            type: two-columns

The older single-server layout (top-level hostname/username/password plus
parallel `queries` and `querytypes` lists) is still accepted and becomes a
single server named after its hostname.

Only SELECT and SHOW statements are allowed; a statement separator (;)
anywhere in a query is rejected. Either problem aborts startup.
"""

import argparse
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from .auth import decrypt_password
from .metrics.keys import (
    DEFAULT_DELTA_KEY_WILDCARD,
    DEFAULT_DELTA_WILDCARD,
    DEFAULT_RATE_SUFFIX,
    ColumnMarkers,
)
from .metrics.shapes import QueryShape

logger = logging.getLogger("sqlbeat.config")

DEFAULT_PORT = 3306
ALLOWED_STATEMENTS = ("SELECT", "SHOW")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, None: 1}

# Keys used by the older flat config files
_LEGACY_KEYS = {
    "deltawildcard": "delta_wildcard",
    "deltakeywildcard": "delta_key_wildcard",
    "encryptedpassword": "encrypted_password",
}
_LEGACY_SERVER_KEYS = ("hostname", "port", "username", "password", "encrypted_password")


class UnsafeQueryError(ValueError):
    """Query text is not a single SELECT/SHOW statement"""


def validate_query(sql: str) -> str:
    """Reject anything but a single SELECT or SHOW statement."""
    clean = sql.strip().upper()
    if not clean.startswith(ALLOWED_STATEMENTS) or ";" in clean:
        raise UnsafeQueryError(
            f"Only SELECT/SHOW queries are allowed (the char ; is forbidden): {sql!r}"
        )
    return sql


def parse_duration(value: Any) -> float:
    """Seconds from a number or a duration string like '10s', '500ms', '1m'."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit]


def _rename_legacy_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_LEGACY_KEYS.get(key, key): value for key, value in data.items()}


class QueryConfig(BaseModel):
    query: str = Field(validation_alias=AliasChoices("query", "querystr"))
    type: QueryShape = Field(validation_alias=AliasChoices("type", "querytype"))

    @field_validator("query")
    @classmethod
    def check_query(cls, v: str) -> str:
        return validate_query(v)


class ServerConfig(BaseModel):
    hostname: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    username: str = "sqlbeat_user"
    password: str = Field(default="", repr=False)
    encrypted_password: str = Field(default="", repr=False)
    database: str = "information_schema"
    connect_timeout: int = Field(default=10, ge=1)
    queries: List[QueryConfig] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = _rename_legacy_keys(data)
            # An empty port means the default one
            if data.get("port") in ("", None):
                data.pop("port", None)
        return data

    @model_validator(mode="after")
    def decrypt(self) -> "ServerConfig":
        if self.encrypted_password:
            self.password = decrypt_password(self.encrypted_password)
        return self


class OutputConfig(BaseModel):
    type: Literal["console", "http"] = "console"
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout: int = Field(default=10, ge=1)
    verify_tls: bool = True
    pretty: bool = False

    @model_validator(mode="after")
    def require_url(self) -> "OutputConfig":
        if self.type == "http" and not self.url:
            raise ValueError("output.url is required for http output")
        return self


class BeatConfig(BaseModel):
    """sqlbeat configuration"""
    period: float = Field(default=10.0, gt=0, description="Seconds between polling cycles")
    servers: Dict[str, ServerConfig] = Field(default_factory=dict)
    delta_wildcard: str = Field(default=DEFAULT_DELTA_WILDCARD, min_length=1)
    delta_key_wildcard: str = Field(default=DEFAULT_DELTA_KEY_WILDCARD, min_length=1)
    rate_suffix: str = DEFAULT_RATE_SUFFIX
    parallel_servers: bool = False
    log_level: str = "INFO"
    once: bool = False
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_layout(cls, data: Any) -> Any:
        """Turn the flat single-server layout into a `servers` mapping."""
        if not isinstance(data, dict):
            return data
        data = _rename_legacy_keys(data)
        if "servers" in data or "queries" not in data:
            return data

        queries = data.pop("queries") or []
        query_types = data.pop("querytypes", None) or []
        if len(queries) != len(query_types):
            raise ValueError(
                f"queries and querytypes must have the same length ({len(queries)} != {len(query_types)})"
            )

        server = {key: data.pop(key) for key in _LEGACY_SERVER_KEYS if key in data}
        server["queries"] = [{"query": q, "type": t} for q, t in zip(queries, query_types)]
        data["servers"] = {server.get("hostname", "127.0.0.1"): server}
        return data

    @field_validator("period", mode="before")
    @classmethod
    def parse_period(cls, v: Any) -> float:
        return parse_duration(v)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {v}")
        return level

    @property
    def markers(self) -> ColumnMarkers:
        return ColumnMarkers(delta=self.delta_wildcard, delta_key=self.delta_key_wildcard, rate=self.rate_suffix)

    def override_with_args(self, args: argparse.Namespace) -> "BeatConfig":
        """Override config with command line arguments if provided"""
        # Only override if explicitly provided - preserves config file values
        if getattr(args, "period", None) is not None:
            self.period = parse_duration(args.period)
        if getattr(args, "log_level", None) is not None:
            self.log_level = args.log_level
        if getattr(args, "once", False):
            self.once = True
        return self


def load_config_from(path: Path) -> BeatConfig:
    """Load configuration from YAML file."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    logger.debug("loaded config from %s", path)
    return BeatConfig(**data)
