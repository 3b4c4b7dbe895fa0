"""
Configurações da aplicação.
Carrega variáveis de ambiente.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Configurações carregadas do .env"""

    # App
    APP_NAME: str = "Audience Engine"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Backend de dados: "supabase" em produção, "memory" para simulação local
    STORE_BACKEND: str = "supabase"

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_TIMEOUT_SECONDS: float = 10.0

    # Anthropic (geração de mensagens)
    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "claude-3-5-haiku-20241022"
    LLM_MAX_TOKENS: int = 500
    LLM_TIMEOUT_SECONDS: float = 15.0
    MESSAGE_CANDIDATES: int = 3

    # Segmentação
    RULE_MAX_DEPTH: int = 10

    # Simulação de entrega
    DELIVERY_CONCURRENCY: int = 10
    DELIVERY_FAILURE_RATE: float = 0.0  # 0.0 = sempre SENT (comportamento original)

    @property
    def is_production(self) -> bool:
        """Retorna True se está em produção."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_KEY)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignora variáveis extras do .env


@lru_cache()
def get_settings() -> Settings:
    """Retorna instância cacheada das configurações."""
    return Settings()
