"""
Estimativa de audiencia.

Conta clientes que satisfazem um CompiledFilter usando o CustomerStore.
"""
import logging

from app.core.exceptions import QueryError
from app.repositories.base import CustomerStore, QueryResult
from app.services.segmentation.compiler import CompiledFilter

logger = logging.getLogger(__name__)


class AudienceEstimator:
    """Estimador de tamanho de segmento."""

    def __init__(self, store: CustomerStore):
        self.store = store

    async def count(self, compiled: CompiledFilter) -> int:
        """
        Conta clientes que satisfazem o filtro.

        Raises:
            QueryError: Banco inacessivel ou contagem malformada
        """
        try:
            total = await self.store.count_matching(compiled)
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(
                "Erro inesperado ao contar audiencia",
                details={"filter": compiled.sql},
                original_error=e,
            )

        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise QueryError(
                "Contagem de audiencia malformada",
                details={"filter": compiled.sql, "received": repr(total)},
            )
        return total

    async def estimate(self, compiled: CompiledFilter) -> QueryResult[int]:
        """
        Conta com degradacao: em QueryError retorna 0 e o erro no resultado.

        Returns:
            QueryResult com data=contagem (0 em caso de falha) e error preenchido
        """
        try:
            total = await self.count(compiled)
        except QueryError as e:
            logger.error(
                f"Erro ao estimar audiencia: {e}",
                extra={"extra_fields": {"filter": compiled.sql}},
            )
            return QueryResult(data=0, success=False, error=str(e), count=0)

        logger.debug(f"Audiencia estimada: {total} ({compiled.sql})")
        return QueryResult(data=total, success=True, count=total)
