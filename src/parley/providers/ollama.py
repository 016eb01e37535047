# src/parley/providers/ollama.py
from __future__ import annotations

from parley.providers.formats import ChatCompletionsFormat
from parley.providers.http_provider import HttpChatProvider
from parley.providers.registry import ProviderRegistry


@ProviderRegistry.register("ollama")
class OllamaProvider(HttpChatProvider):
    """
    Locally hosted model behind Ollama's OpenAI-compatible endpoint.
    No API key; model name and description come from config
    (model_name, model_desc).
    """

    name = "ollama"
    label = "ollama"
    default_model = "llama3"
    default_description = "Local model served by Ollama"
    default_endpoint = "http://localhost:11434"
    requires_api_key = False
    wire_format = ChatCompletionsFormat()
