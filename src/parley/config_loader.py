# src/parley/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

from .providers.registry import ProviderRegistry


class ConfigFileError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigFileError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigFileError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigFileError(f"'{dotted}' must be a string")
    if typ is dict and not isinstance(cur, dict):
        raise ConfigFileError(f"'{dotted}' must be a mapping")
    return cur


def _optional_mapping(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    val = raw.get(key)
    if val is None:
        return {}
    if not isinstance(val, dict):
        raise ConfigFileError(f"'{key}' must be a mapping")
    return val


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not raw:
        raise ConfigFileError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "model.provider", str)
    _require(raw, "runtime.stream", bool)

    # Normalise enumerations
    ProviderRegistry.ensure_imports()
    provider = str(raw["model"]["provider"]).strip().lower()
    known = ProviderRegistry.names()
    if provider not in known:
        raise ConfigFileError(f"Unknown model.provider '{provider}' (expected one of {known}).")
    raw["model"]["provider"] = provider

    providers = _optional_mapping(raw, "providers")
    for name, section in providers.items():
        if section is not None and not isinstance(section, dict):
            raise ConfigFileError(f"'providers.{name}' must be a mapping")
        params = (section or {}).get("params")
        if params is not None and not isinstance(params, dict):
            raise ConfigFileError(f"'providers.{name}.params' must be a mapping")
    raw["providers"] = providers

    raw["secrets"] = _optional_mapping(raw, "secrets")
    raw["logging"] = _optional_mapping(raw, "logging")
    if "system_prompt" in raw and raw["system_prompt"] is not None and not isinstance(raw["system_prompt"], str):
        raise ConfigFileError("'system_prompt' must be a string")

    return raw
