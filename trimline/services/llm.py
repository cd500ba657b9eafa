"""
LLM client service.

Thin wrappers over the Anthropic and OpenAI SDKs with a common response type,
token accounting and cost estimation. Provider failures of any kind come back
as ``LLMError`` so callers can treat them as one recoverable case.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import anthropic
import openai

from trimline.core.config import settings
from trimline.core.errors import LLMError

logger = logging.getLogger(__name__)


class ModelProvider(str, Enum):
    """Supported model providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class LLMResponse:
    """Response from an LLM call."""
    content: str
    model: str
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    stop_reason: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ModelConfig:
    """Configuration for a specific model."""
    provider: ModelProvider
    model_id: str
    max_output_tokens: int
    input_cost_per_1k: float  # USD per 1000 input tokens
    output_cost_per_1k: float  # USD per 1000 output tokens


MODELS = {
    "claude-sonnet-4-20250514": ModelConfig(
        provider=ModelProvider.ANTHROPIC,
        model_id="claude-sonnet-4-20250514",
        max_output_tokens=64000,
        input_cost_per_1k=0.003,
        output_cost_per_1k=0.015,
    ),
    "claude-3-5-sonnet-20241022": ModelConfig(
        provider=ModelProvider.ANTHROPIC,
        model_id="claude-3-5-sonnet-20241022",
        max_output_tokens=8192,
        input_cost_per_1k=0.003,
        output_cost_per_1k=0.015,
    ),
    "claude-3-haiku-20240307": ModelConfig(
        provider=ModelProvider.ANTHROPIC,
        model_id="claude-3-haiku-20240307",
        max_output_tokens=4096,
        input_cost_per_1k=0.00025,
        output_cost_per_1k=0.00125,
    ),
    "gpt-4o": ModelConfig(
        provider=ModelProvider.OPENAI,
        model_id="gpt-4o",
        max_output_tokens=16384,
        input_cost_per_1k=0.0025,
        output_cost_per_1k=0.01,
    ),
    "gpt-4o-mini": ModelConfig(
        provider=ModelProvider.OPENAI,
        model_id="gpt-4o-mini",
        max_output_tokens=16384,
        input_cost_per_1k=0.00015,
        output_cost_per_1k=0.0006,
    ),
}


def get_model_config(model: str) -> ModelConfig:
    config = MODELS.get(model)
    if not config:
        raise ValueError(f"Unknown model: {model}")
    return config


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, model: str):
        self.model = model
        self.config = get_model_config(model)

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate text from a prompt."""

    def _clamp_max_tokens(self, max_tokens: int) -> int:
        return max(1, min(max_tokens, self.config.max_output_tokens))

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Calculate estimated cost for the request."""
        input_cost = (input_tokens / 1000) * self.config.input_cost_per_1k
        output_cost = (output_tokens / 1000) * self.config.output_cost_per_1k
        return input_cost + output_cost


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client."""

    def __init__(self, model: str = "claude-3-5-sonnet-20241022", api_key: Optional[str] = None):
        super().__init__(model)
        api_key = api_key or settings.ANTHROPIC_API_KEY
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        self.client = anthropic.Anthropic(
            api_key=api_key, timeout=settings.LLM_TIMEOUT_SECONDS
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate text using Claude."""
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self._clamp_max_tokens(max_tokens),
                temperature=temperature,
                system=system_prompt or "You are a helpful AI assistant.",
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic request failed: {e}") from e

        content = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens

        return LLMResponse(
            content=content,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost=self._calculate_cost(input_tokens, output_tokens),
            stop_reason=message.stop_reason,
        )


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT client."""

    def __init__(self, model: str = "gpt-4o", api_key: Optional[str] = None):
        super().__init__(model)
        api_key = api_key or settings.OPENAI_API_KEY
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        self.client = openai.OpenAI(api_key=api_key, timeout=settings.LLM_TIMEOUT_SECONDS)

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate text using GPT."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self._clamp_max_tokens(max_tokens),
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            raise LLMError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost=self._calculate_cost(input_tokens, output_tokens),
            stop_reason=response.choices[0].finish_reason,
        )


class LLMService:
    """
    Routes generation requests to a client for the requested model.

    Clients are created lazily, so a missing API key only matters for the
    provider that is actually used.
    """

    def __init__(self, default_model: Optional[str] = None):
        self._clients: dict[str, BaseLLMClient] = {}
        self.default_model = default_model or settings.CONDENSER_MODEL

    def get_client(self, model: Optional[str] = None) -> BaseLLMClient:
        """Get or create a client for the specified model."""
        model = model or self.default_model

        if model not in self._clients:
            config = get_model_config(model)
            if config.provider == ModelProvider.ANTHROPIC:
                self._clients[model] = AnthropicClient(model)
            elif config.provider == ModelProvider.OPENAI:
                self._clients[model] = OpenAIClient(model)
            else:
                raise ValueError(f"Unknown provider: {config.provider}")

        return self._clients[model]

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate text using the specified or default model."""
        client = self.get_client(model)
        response = client.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        logger.debug(
            "LLM call model=%s input_tokens=%d output_tokens=%d cost=%.4f",
            response.model,
            response.input_tokens,
            response.output_tokens,
            response.estimated_cost,
        )
        return response


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the global LLM service instance."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
