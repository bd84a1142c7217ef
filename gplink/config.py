from __future__ import annotations

from dataclasses import dataclass, replace
import functools
import logging
import os
from pathlib import Path
import re
import subprocess
import tomllib
from typing import Any, Mapping

LOGGER = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "gnuplot"
DEFAULT_TIMEOUT_S = 5.0
DEFAULT_STARTUP_TIMEOUT_S = 8.0
CONFIG_ENV_VAR = "GPLINK_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/gplink/config.toml")


@dataclass(frozen=True)
class GnuplotConfig:
    executable: str = DEFAULT_EXECUTABLE
    persist: bool = True
    timeout: float = DEFAULT_TIMEOUT_S
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT_S
    check_syntax: bool = True

    def __post_init__(self) -> None:
        if not self.executable:
            raise ValueError("executable must not be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.startup_timeout <= 0:
            raise ValueError("startup_timeout must be > 0")


def load_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> GnuplotConfig:
    """Build the process-wide config: defaults, then the TOML file, then environment overrides."""

    env = os.environ if environ is None else environ
    config = GnuplotConfig()

    config_path = _resolve_config_path(path, env)
    if config_path is not None:
        with config_path.open("rb") as f:
            raw = tomllib.load(f)
        section = raw.get("gnuplot", raw)
        if not isinstance(section, dict):
            raise ValueError(f"config section [gnuplot] must be a table: {config_path}")
        config = _apply_fields(config, section, source=str(config_path))

    overrides: dict[str, Any] = {}
    if env.get("GPLINK_GNUPLOT"):
        overrides["executable"] = env["GPLINK_GNUPLOT"]
    if env.get("GPLINK_PERSIST"):
        overrides["persist"] = _coerce_bool(env["GPLINK_PERSIST"], "GPLINK_PERSIST")
    if env.get("GPLINK_TIMEOUT"):
        overrides["timeout"] = _coerce_float(env["GPLINK_TIMEOUT"], "GPLINK_TIMEOUT")
    if env.get("GPLINK_CHECK_SYNTAX"):
        overrides["check_syntax"] = _coerce_bool(env["GPLINK_CHECK_SYNTAX"], "GPLINK_CHECK_SYNTAX")
    if overrides:
        config = replace(config, **overrides)
    return config


def _resolve_config_path(path: str | Path | None, env: Mapping[str, str]) -> Path | None:
    if path is not None:
        explicit = Path(path).expanduser()
        if not explicit.exists():
            raise FileNotFoundError(f"gplink config not found: {explicit}")
        return explicit
    if env.get(CONFIG_ENV_VAR):
        from_env = Path(env[CONFIG_ENV_VAR]).expanduser()
        if not from_env.exists():
            raise FileNotFoundError(f"gplink config not found: {from_env} (from ${CONFIG_ENV_VAR})")
        return from_env
    default = DEFAULT_CONFIG_PATH.expanduser()
    return default if default.exists() else None


def _apply_fields(config: GnuplotConfig, raw: dict[str, Any], *, source: str) -> GnuplotConfig:
    known = {"executable", "persist", "timeout", "startup_timeout", "check_syntax"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"unknown config field(s) in {source}: {', '.join(unknown)}")
    fields: dict[str, Any] = {}
    if "executable" in raw:
        fields["executable"] = str(raw["executable"])
    if "persist" in raw:
        fields["persist"] = _coerce_bool(raw["persist"], "persist")
    if "timeout" in raw:
        fields["timeout"] = _coerce_float(raw["timeout"], "timeout")
    if "startup_timeout" in raw:
        fields["startup_timeout"] = _coerce_float(raw["startup_timeout"], "startup_timeout")
    if "check_syntax" in raw:
        fields["check_syntax"] = _coerce_bool(raw["check_syntax"], "check_syntax")
    return replace(config, **fields)


def _coerce_bool(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{label} must be a boolean, got {value!r}")


def _coerce_float(value: Any, label: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be a number, got {value!r}") from exc


@functools.lru_cache(maxsize=None)
def gnuplot_features(executable: str) -> frozenset[str]:
    """Command-line switches advertised by `gnuplot --help` (e.g. `persist`)."""

    try:
        proc = subprocess.run(
            [executable, "--help"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=DEFAULT_STARTUP_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        LOGGER.warning("could not probe %s --help: %s", executable, exc)
        return frozenset()
    return frozenset(re.findall(r"--([A-Za-z0-9_]+)", f"{proc.stdout}\n{proc.stderr}"))
