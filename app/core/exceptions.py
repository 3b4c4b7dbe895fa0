"""
Exceptions customizadas do motor de audiência.

Hierarquia:
- ValidationError: regra de segmentação malformada ou insegura
- QueryError: falha de leitura no banco (inacessível ou resposta malformada)
- PersistenceError: falha ao gravar registro de entrega
- ProviderError: gerador de texto indisponível ou resposta vazia
"""
from typing import Optional


class SegmentationServiceError(Exception):
    """Base exception para todos os erros do sistema."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(SegmentationServiceError):
    """Regra de segmentação inválida (campo, operador, tipo, profundidade)."""
    pass


class QueryError(SegmentationServiceError):
    """Erro de leitura no banco (Supabase) ou resposta malformada."""
    pass


class PersistenceError(SegmentationServiceError):
    """Erro ao persistir log de entrega ou estado de execução."""
    pass


class ProviderError(SegmentationServiceError):
    """Erro do provider de geração de texto."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ):
        self.provider = provider
        super().__init__(message, details, original_error)


class NotFoundError(SegmentationServiceError):
    """Recurso nao encontrado."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None
    ):
        message = f"{resource} nao encontrado"
        details = {}
        if identifier:
            details["id"] = identifier
        super().__init__(message, details)


class ConfigurationError(SegmentationServiceError):
    """Erro de configuracao do sistema."""
    pass
