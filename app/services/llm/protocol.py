"""
LLM Provider Protocol - Interface para qualquer provider de LLM.

Este módulo define a interface que todos os providers devem implementar.
Usar Protocol permite duck typing com type checking estático.

Exemplo de uso:
    async def minha_funcao(provider: LLMProvider):
        response = await provider.generate(request)
"""
from typing import Protocol, Optional, runtime_checkable

from .models import LLMRequest, LLMResponse


@runtime_checkable
class LLMProvider(Protocol):
    """
    Interface para providers de LLM.

    Qualquer classe que implemente estes métodos é um LLMProvider válido.
    Não precisa herdar explicitamente.

    Attributes:
        model_id: Identificador do modelo (ex: "claude-3-5-haiku-20241022")
    """

    @property
    def model_id(self) -> str:
        """Retorna o ID do modelo sendo usado."""
        ...

    async def generate(
        self,
        request: LLMRequest,
    ) -> LLMResponse:
        """
        Gera uma resposta do LLM.

        Args:
            request: Objeto LLMRequest com mensagens e configurações.

        Returns:
            LLMResponse com texto e metadata.

        Raises:
            LLMError: Se houver erro na chamada ao provider.
        """
        ...


class LLMError(Exception):
    """Erro genérico de LLM."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        retryable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.original_error = original_error

    def __str__(self) -> str:
        return f"[{self.provider}] {super().__str__()}"
