from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

from jsonschema import ValidationError, validate

from .constants import (
    BIN_DIR_ENV,
    BOOL_FLAGS,
    DEFAULT_BIN_DIR,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_EXECUTABLE,
    FALSE_VALUES,
    HELP_FLAGS,
    STORE_ENV_PREFIX,
    STRING_FLAGS,
    TRUE_VALUES,
    V2_ONLY_FLAGS,
)
from .errors import ConfigError
from .models import TLSInfo
from .utils import env_key

logger = logging.getLogger(__name__)

SETTINGS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "bin_dir": {"type": "string", "minLength": 1},
        "executable": {"type": "string", "minLength": 1},
        "discovery_timeout": {"type": "number", "exclusiveMinimum": 0},
        "probe_timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
}


@dataclass
class StoreConfig:
    """Store flags merged with their environment variables.

    Only ``explicit`` values are recorded; an unset flag reads as "".
    """

    values: dict[str, str] = field(default_factory=dict)
    from_env: set[str] = field(default_factory=set)

    def lookup(self, name: str) -> str:
        return self.values.get(name, "")

    @property
    def data_dir(self) -> str:
        return self.lookup("data-dir")

    @property
    def discovery(self) -> str:
        return self.lookup("discovery")

    @property
    def peers(self) -> str:
        return self.lookup("peers")

    def v2_only_values(self) -> dict[str, str]:
        return {name: self.lookup(name) for name in V2_ONLY_FLAGS if self.lookup(name)}

    def client_tls(self) -> TLSInfo:
        return TLSInfo(
            ca_file=self.lookup("ca-file"),
            cert_file=self.lookup("cert-file"),
            key_file=self.lookup("key-file"),
        )

    def peer_tls(self) -> TLSInfo:
        return TLSInfo(
            ca_file=self.lookup("peer-ca-file"),
            cert_file=self.lookup("peer-cert-file"),
            key_file=self.lookup("peer-key-file"),
        )


@dataclass(frozen=True)
class StarterSettings:
    bin_dir: str
    executable: str = DEFAULT_EXECUTABLE
    discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT
    probe_timeout: float | None = None


def _parse_bool(name: str, raw: str) -> str:
    if raw in TRUE_VALUES:
        return "true"
    if raw in FALSE_VALUES:
        return "false"
    raise ConfigError("FLAG_VALUE_INVALID", f"invalid boolean value {raw!r} for -{name}")


def _known(name: str) -> bool:
    return name in STRING_FLAGS or name in BOOL_FLAGS


def parse_store_config(args: Sequence[str], environ: Mapping[str, str] | None = None) -> StoreConfig:
    """Parse store arguments with go ``flag`` syntax, then overlay the environment."""
    environ = os.environ if environ is None else environ
    config = StoreConfig()

    idx = 0
    while idx < len(args):
        arg = args[idx]
        if len(arg) < 2 or not arg.startswith("-"):
            break
        if arg == "--":
            break
        name = arg[2:] if arg.startswith("--") else arg[1:]
        if not name or name.startswith("-") or name.startswith("="):
            raise ConfigError("FLAG_SYNTAX", f"bad flag syntax: {arg}")

        value: str | None = None
        if "=" in name:
            name, value = name.split("=", 1)

        if name in HELP_FLAGS and not _known(name):
            break
        if not _known(name):
            raise ConfigError("UNKNOWN_FLAG", f"flag provided but not defined: -{name}")

        if name in BOOL_FLAGS:
            config.values[name] = "true" if value is None else _parse_bool(name, value)
        else:
            if value is None:
                if idx + 1 >= len(args):
                    raise ConfigError("FLAG_VALUE_MISSING", f"flag needs an argument: -{name}")
                idx += 1
                value = args[idx]
            config.values[name] = value
        idx += 1

    for name in sorted(STRING_FLAGS | BOOL_FLAGS):
        if name in config.values:
            continue
        key = env_key(name, STORE_ENV_PREFIX)
        raw = environ.get(key)
        if raw is None or raw == "":
            continue
        if name in BOOL_FLAGS:
            raw = _parse_bool(name, raw)
        logger.debug("recognized and used environment variable %s=%s", key, raw)
        config.values[name] = raw
        config.from_env.add(name)

    return config


def default_bin_dir(argv0: str) -> str:
    return str((Path(argv0).resolve().parent / DEFAULT_BIN_DIR).resolve())


def load_settings(
    path: str | None = None,
    environ: Mapping[str, str] | None = None,
    argv0: str = "kvstarter",
) -> StarterSettings:
    import yaml

    environ = os.environ if environ is None else environ
    raw: dict[str, Any] = {}
    if path:
        settings_path = Path(path)
        try:
            loaded = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError("SETTINGS_UNREADABLE", f"cannot read settings {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError("SETTINGS_INVALID", f"invalid YAML in {path}: {exc}") from exc
        raw = loaded or {}
        try:
            validate(raw, SETTINGS_SCHEMA)
        except ValidationError as exc:
            raise ConfigError("SETTINGS_INVALID", f"{path}: {exc.message}") from exc

    bin_dir = environ.get(BIN_DIR_ENV) or raw.get("bin_dir") or default_bin_dir(argv0)
    return StarterSettings(
        bin_dir=bin_dir,
        executable=raw.get("executable", DEFAULT_EXECUTABLE),
        discovery_timeout=float(raw.get("discovery_timeout", DEFAULT_DISCOVERY_TIMEOUT)),
        probe_timeout=raw.get("probe_timeout"),
    )
