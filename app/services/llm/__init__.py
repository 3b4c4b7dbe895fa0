"""
LLM Provider Module - Abstração sobre providers de LLM.

Este módulo fornece uma interface unificada para trabalhar com LLMs,
permitindo trocar providers sem mudar código consumidor.

Uso básico:
    from app.services.llm import create_llm_provider, LLMRequest, Message

    provider = create_llm_provider(get_settings())
    request = LLMRequest(messages=[Message.user("Olá!")])
    response = await provider.generate(request)

Uso em testes:
    from app.services.llm import MockLLMProvider

    mock = MockLLMProvider(default_response="Mock!")
"""

from .protocol import LLMProvider, LLMError

from .models import (
    Message,
    MessageRole,
    LLMRequest,
    LLMResponse,
    StopReason,
)

from .anthropic_provider import AnthropicProvider
from .mock_provider import (
    MockLLMProvider,
    create_mock_that_returns,
    create_mock_that_fails,
)

from .factory import create_llm_provider

__all__ = [
    # Protocol
    "LLMProvider",
    "LLMError",
    # Models
    "Message",
    "MessageRole",
    "LLMRequest",
    "LLMResponse",
    "StopReason",
    # Providers
    "AnthropicProvider",
    "MockLLMProvider",
    "create_mock_that_returns",
    "create_mock_that_fails",
    # Factory
    "create_llm_provider",
]
