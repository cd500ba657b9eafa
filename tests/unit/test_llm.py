"""Provider clients: response mapping and error wrapping."""
from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from trimline.core.config import settings
from trimline.core.errors import CondensationError, LLMError
from trimline.services.llm import AnthropicClient, OpenAIClient


def _raises(exc):
    def create(**kwargs):
        raise exc

    return create


def _anthropic_stub(create):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def _openai_stub(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestAnthropicClient:
    def test_maps_message_to_response(self):
        client = AnthropicClient(api_key="test-key")
        sent = {}

        def create(**kwargs):
            sent.update(kwargs)
            return SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text="Shorter "),
                    SimpleNamespace(type="text", text="chapter"),
                ],
                usage=SimpleNamespace(input_tokens=1000, output_tokens=500),
                stop_reason="end_turn",
            )

        client.client = _anthropic_stub(create)

        response = client.generate("Condense this", system_prompt="Editor", max_tokens=10**6)

        assert response.content == "Shorter chapter"
        assert response.total_tokens == 1500
        assert response.stop_reason == "end_turn"
        assert response.estimated_cost > 0
        assert sent["system"] == "Editor"
        assert sent["max_tokens"] == client.config.max_output_tokens

    def test_connection_error_becomes_llm_error(self):
        client = AnthropicClient(api_key="test-key")
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.client = _anthropic_stub(_raises(anthropic.APIConnectionError(request=request)))

        with pytest.raises(LLMError, match="Anthropic request failed") as exc_info:
            client.generate("Condense this")

        assert isinstance(exc_info.value.__cause__, anthropic.APIConnectionError)
        assert isinstance(exc_info.value, CondensationError)

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            AnthropicClient()


class TestOpenAIClient:
    def test_maps_completion_to_response(self):
        client = OpenAIClient(api_key="test-key")
        sent = {}

        def create(**kwargs):
            sent.update(kwargs)
            return SimpleNamespace(
                choices=[
                    SimpleNamespace(
                        message=SimpleNamespace(content="Shorter chapter"),
                        finish_reason="stop",
                    )
                ],
                usage=SimpleNamespace(prompt_tokens=900, completion_tokens=300),
            )

        client.client = _openai_stub(create)

        response = client.generate("Condense this", system_prompt="Editor")

        assert response.content == "Shorter chapter"
        assert response.input_tokens == 900
        assert response.output_tokens == 300
        assert response.stop_reason == "stop"
        assert sent["messages"][0] == {"role": "system", "content": "Editor"}

    def test_connection_error_becomes_llm_error(self):
        client = OpenAIClient(api_key="test-key")
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client.client = _openai_stub(_raises(openai.APIConnectionError(request=request)))

        with pytest.raises(LLMError, match="OpenAI request failed") as exc_info:
            client.generate("Condense this")

        assert isinstance(exc_info.value.__cause__, openai.APIConnectionError)

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIClient()
