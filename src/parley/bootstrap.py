from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from dotenv import load_dotenv

from .config_loader import load_config
from .logging_setup import configure_logging
from .providers.registry import ProviderRegistry
from .secrets.sources import SecretsResolver

log = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You're a helpful AI."


def _stringify(section: Dict[str, Any]) -> Dict[str, str]:
    return {str(k): str(v) for k, v in (section or {}).items() if v is not None}


def build_provider(
    cfg: Dict[str, Any],
    *,
    provider_kwargs: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, Dict[str, str]]:
    """
    Resolve the configured provider, fetch its API key and initialize it.
    Returns (provider, default request params). Raises ConfigError when a
    required key cannot be found.
    """
    ProviderRegistry.ensure_imports()  # make sure built-ins register

    provider_name = cfg["model"]["provider"]
    section = dict((cfg.get("providers") or {}).get(provider_name) or {})
    params = _stringify(section.pop("params", None) or {})

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(method=secrets_cfg.get("method", "env"), mapping=secrets_cfg.get("mapping", {}))

    settings = _stringify(section)
    api_key = resolver.secret(provider_name, "api_key")
    if api_key:
        settings["api_key"] = api_key
    if cfg["model"].get("name"):
        settings.setdefault("model_name", str(cfg["model"]["name"]))

    provider = ProviderRegistry.create(provider_name, settings, **(provider_kwargs or {}))
    log.info("provider %s ready: %s", provider_name, provider.model_info())
    return provider, params


def build_app(
    config_path: Path,
    *,
    provider_kwargs: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, set up logging, build and
    initialize the provider.
    Returns: dict with cfg, paths, provider, params, system_prompt, stream.
    """
    load_dotenv()
    cfg = load_config(config_path)
    configure_logging((cfg.get("logging") or {}).get("level"))

    provider, params = build_provider(cfg, provider_kwargs=provider_kwargs)

    return {
        "cfg": cfg,
        "paths": {"config_dir": config_path.resolve().parent},
        "provider": provider,
        "params": params,
        "system_prompt": cfg.get("system_prompt") or DEFAULT_SYSTEM_PROMPT,
        "stream": bool(cfg["runtime"]["stream"]),
    }
