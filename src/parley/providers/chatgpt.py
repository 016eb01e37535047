# src/parley/providers/chatgpt.py
from __future__ import annotations

from parley.providers.formats import ResponsesFormat
from parley.providers.http_provider import HttpChatProvider
from parley.providers.registry import ProviderRegistry


@ProviderRegistry.register("chatgpt")
class ChatGPTProvider(HttpChatProvider):
    """
    OpenAI via the Responses API: conversation under 'input', streamed as
    typed events ending with 'response.completed'.
    """

    name = "chatgpt"
    label = "openai"
    default_model = "gpt-4o-mini"
    default_description = "OpenAI GPT-4o mini: lightweight, low-cost model close to GPT-4 Turbo on core tasks."
    default_endpoint = "https://api.openai.com"
    requires_api_key = True
    wire_format = ResponsesFormat()
