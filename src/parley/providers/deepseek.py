# src/parley/providers/deepseek.py
from __future__ import annotations

from parley.providers.formats import ChatCompletionsFormat
from parley.providers.http_provider import HttpChatProvider
from parley.providers.registry import ProviderRegistry


@ProviderRegistry.register("deepseek")
class DeepSeekProvider(HttpChatProvider):
    """DeepSeek hosted API (OpenAI-compatible Chat Completions)."""

    name = "deepseek"
    label = "deepseek"
    default_model = "deepseek-chat"
    default_description = "General-purpose conversational assistant with strong Chinese-language support."
    default_endpoint = "https://api.deepseek.com"
    requires_api_key = True
    wire_format = ChatCompletionsFormat()
