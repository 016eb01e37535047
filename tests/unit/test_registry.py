# tests/unit/test_registry.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from parley.core.errors import ConfigError
from parley.providers.registry import ProviderRegistry


def test_registry_register_and_get(monkeypatch):
    # keep the dummy out of the shared registry
    monkeypatch.setattr(ProviderRegistry, "_classes", dict(ProviderRegistry._classes))

    @ProviderRegistry.register("Dummy")
    class DummyProvider:
        @classmethod
        def create(cls, config, **kwargs):
            return cls()
        def send_message(self, messages, params=None): return "ok"

    # Case-insensitive lookup
    cls_lower = ProviderRegistry.get("dummy")
    cls_upper = ProviderRegistry.get("DUMMY")
    assert cls_lower is DummyProvider
    assert cls_upper is DummyProvider
    assert isinstance(ProviderRegistry.create("dummy", {}), DummyProvider)


def test_registry_unknown_raises():
    with pytest.raises(KeyError):
        ProviderRegistry.get("does-not-exist")


def test_builtins_register():
    ProviderRegistry.ensure_imports()
    for name in ("deepseek", "chatgpt", "ollama", "echo"):
        assert name in ProviderRegistry.names()


def test_create_raises_config_error_without_key():
    ProviderRegistry.ensure_imports()
    with pytest.raises(ConfigError):
        ProviderRegistry.create("deepseek", {})
    p = ProviderRegistry.create("ollama", {})
    assert p.is_available()
