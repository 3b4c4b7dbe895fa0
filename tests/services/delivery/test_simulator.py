"""
Testes do DeliverySimulator.
"""
import asyncio
from dataclasses import replace
import pytest
from datetime import timedelta

from app.core.exceptions import PersistenceError
from app.repositories.entities import CampaignStatus
from app.repositories.memory import InMemoryCustomerStore
from app.services.delivery.policies import CallablePolicy, FailureRatePolicy
from app.services.delivery.simulator import DeliverySimulator, render_message
from app.services.delivery.types import DeliveryStatus, RunStatus


class TestSimulacaoCompleta:
    """Execuções que terminam com sucesso."""

    @pytest.mark.asyncio
    async def test_tres_destinatarios_todos_enviados(self, store, campanha, clientes_cenario):
        """Política padrão: {sent:3, failed:0, total:3} e 3 logs SENT."""
        simulator = DeliverySimulator(store)

        stats = await simulator.simulate(campanha, clientes_cenario)

        assert stats.to_dict() == {"sent": 3, "failed": 0, "total": 3}
        logs = await store.list_delivery_logs(campanha.id)
        assert len(logs) == 3
        assert all(log.status is DeliveryStatus.SENT for log in logs)
        assert {log.customer_id for log in logs} == {"c1", "c2", "c3"}
        assert {log.run_id for log in logs} == {stats.run_id}

    @pytest.mark.asyncio
    async def test_total_igual_sent_mais_failed_igual_destinatarios(self, store, campanha, criar_cliente):
        clientes = [criar_cliente(f"x{i}") for i in range(40)]
        simulator = DeliverySimulator(store, policy=FailureRatePolicy(0.3, seed=7))

        stats = await simulator.simulate(campanha, clientes)

        assert stats.total == stats.sent + stats.failed == 40
        assert stats.failed > 0
        logs = [log for log in await store.list_delivery_logs(campanha.id) if log.run_id == stats.run_id]
        assert len(logs) == stats.total
        assert sum(1 for log in logs if log.status is DeliveryStatus.FAILED) == stats.failed

    @pytest.mark.asyncio
    async def test_politica_injetada_deterministica(self, store, campanha, clientes_cenario):
        policy = CallablePolicy(
            lambda c: DeliveryStatus.FAILED if c.id == "c2" else DeliveryStatus.SENT
        )

        stats = await DeliverySimulator(store, policy=policy).simulate(campanha, clientes_cenario)

        assert (stats.sent, stats.failed, stats.total) == (2, 1, 3)
        falhos = [log for log in await store.list_delivery_logs(campanha.id) if log.status is DeliveryStatus.FAILED]
        assert [log.customer_id for log in falhos] == ["c2"]
        assert falhos[0].error

    @pytest.mark.asyncio
    async def test_sem_destinatarios(self, store, campanha):
        stats = await DeliverySimulator(store).simulate(campanha, [])

        assert stats.to_dict() == {"sent": 0, "failed": 0, "total": 0}
        assert (await store.get_campaign(campanha.id)).status is CampaignStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_duplicados_sao_ignorados(self, store, campanha, clientes_cenario):
        stats = await DeliverySimulator(store).simulate(campanha, clientes_cenario + clientes_cenario[:2])

        assert stats.total == 3
        assert len(await store.list_delivery_logs(campanha.id)) == 3

    @pytest.mark.asyncio
    async def test_timestamp_nunca_anterior_a_criacao(self, store, campanha, clientes_cenario):
        """Relógio atrasado não gera log com data anterior à campanha."""
        antes = campanha.created_at - timedelta(days=1)
        simulator = DeliverySimulator(store, clock=lambda: antes)

        await simulator.simulate(campanha, clientes_cenario)

        logs = await store.list_delivery_logs(campanha.id)
        assert all(log.sent_at >= campanha.created_at for log in logs)

    @pytest.mark.asyncio
    async def test_mensagem_personalizada(self, store, campanha, clientes_cenario):
        await DeliverySimulator(store).simulate(campanha, clientes_cenario[:1], message="Oi {name}!")

        [log] = await store.list_delivery_logs(campanha.id)
        assert log.message == "Oi Cliente c1!"

    @pytest.mark.asyncio
    async def test_registra_execucao_e_status(self, store, campanha, clientes_cenario):
        stats = await DeliverySimulator(store).simulate(campanha, clientes_cenario)

        [run] = await store.list_delivery_runs(campanha.id)
        assert run.run_id == stats.run_id
        assert run.status is RunStatus.COMPLETED
        assert (run.recipients, run.sent, run.failed) == (3, 3, 0)
        assert run.finished_at is not None
        assert (await store.get_campaign(campanha.id)).status is CampaignStatus.COMPLETED


class TestFalhaDePersistencia:
    """Falha ao gravar log aborta a execução inteira."""

    @pytest.mark.asyncio
    async def test_falha_no_meio_aborta_sem_estatisticas(self, flaky_store, campanha, clientes_cenario):
        store = flaky_store(customers=clientes_cenario, campaigns=[campanha], fail_on=2)
        simulator = DeliverySimulator(store, concurrency=1)

        with pytest.raises(PersistenceError) as exc:
            await simulator.simulate(campanha, clientes_cenario)

        assert "1/3" in exc.value.message
        [run] = await store.list_delivery_runs(campanha.id)
        assert run.status is RunStatus.FAILED
        assert run.error
        assert (await store.get_campaign(campanha.id)).status is CampaignStatus.FAILED

    @pytest.mark.asyncio
    async def test_logs_da_execucao_abortada_nao_contam(self, flaky_store, campanha, clientes_cenario):
        """Registros gravados antes da falha não entram em agregações futuras."""
        store = flaky_store(customers=clientes_cenario, campaigns=[campanha], fail_on=2)
        simulator = DeliverySimulator(store, concurrency=1)

        with pytest.raises(PersistenceError):
            await simulator.simulate(campanha, clientes_cenario)

        parciais = await store.list_delivery_logs(campanha.id)
        assert len(parciais) == 2

        stats = await simulator.simulate(campanha, clientes_cenario)
        assert stats.total == 3

        acumulado = await simulator.campaign_stats(campanha.id)
        assert acumulado.to_dict() == {"sent": 3, "failed": 0, "total": 3}

    @pytest.mark.asyncio
    async def test_falha_ao_registrar_execucao(self, campanha, clientes_cenario):
        """Campanha inexistente no store: nada é gravado."""
        store = InMemoryCustomerStore(customers=clientes_cenario)

        with pytest.raises(PersistenceError):
            await DeliverySimulator(store).simulate(campanha, clientes_cenario)

        assert await store.list_delivery_logs(campanha.id) == []


    @pytest.mark.asyncio
    async def test_politica_com_erro_vira_persistence_error(self, store, campanha, clientes_cenario):
        def quebra(cliente):
            raise RuntimeError("politica quebrou")

        simulator = DeliverySimulator(store, policy=CallablePolicy(quebra))

        with pytest.raises(PersistenceError) as exc:
            await simulator.simulate(campanha, clientes_cenario)

        assert isinstance(exc.value.original_error, RuntimeError)
        [run] = await store.list_delivery_runs(campanha.id)
        assert run.status is RunStatus.FAILED
        assert "politica quebrou" in run.error


class StoreLento(InMemoryCustomerStore):
    """Store cujo append de log demora o suficiente para ser cancelado."""

    async def append_delivery_log(self, log):
        await asyncio.sleep(10)
        return await super().append_delivery_log(log)


class TestCancelamento:
    """Cancelar a simulação não deixa run nem campanha presas."""

    @pytest.mark.asyncio
    async def test_cancelamento_marca_execucao_como_falha(self, campanha, clientes_cenario):
        store = StoreLento(customers=clientes_cenario, campaigns=[campanha])
        simulator = DeliverySimulator(store)

        task = asyncio.create_task(simulator.simulate(campanha, clientes_cenario))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        [run] = await store.list_delivery_runs(campanha.id)
        assert run.status is RunStatus.FAILED
        assert run.error == "simulacao cancelada"
        assert (await store.get_campaign(campanha.id)).status is CampaignStatus.FAILED
        assert await store.list_delivery_logs(campanha.id) == []
        assert (await simulator.campaign_stats(campanha.id)).total == 0

class TestExecucoesConcorrentes:
    """Execuções simultâneas da mesma campanha não se misturam."""

    @pytest.mark.asyncio
    async def test_runs_concorrentes_tem_ids_e_stats_proprios(self, store, campanha, criar_cliente):
        grupo_a = [criar_cliente(f"a{i}") for i in range(5)]
        grupo_b = [criar_cliente(f"b{i}") for i in range(8)]
        simulator = DeliverySimulator(store, concurrency=2)

        stats_a, stats_b = await asyncio.gather(
            simulator.simulate(campanha, grupo_a),
            simulator.simulate(campanha, grupo_b),
        )

        assert stats_a.run_id != stats_b.run_id
        assert stats_a.total == 5
        assert stats_b.total == 8
        acumulado = await simulator.campaign_stats(campanha.id)
        assert acumulado.total == 13

    @pytest.mark.asyncio
    async def test_campaign_stats_ignora_execucao_em_andamento(self, store, campanha, clientes_cenario):
        """Logs de uma run sem status COMPLETED não aparecem."""
        simulator = DeliverySimulator(store)
        await simulator.simulate(campanha, clientes_cenario)

        runs = await store.list_delivery_runs(campanha.id)
        await store.save_delivery_run(replace(runs[0], status=RunStatus.RUNNING))

        assert (await simulator.campaign_stats(campanha.id)).total == 0


class TestRenderMessage:
    """Personalização do template."""

    def test_substitui_nome_e_email(self, criar_cliente):
        cliente = criar_cliente("1", name="Ana", email="ana@x.com")
        assert render_message("Oi {name} ({email})", cliente) == "Oi Ana (ana@x.com)"

    def test_placeholder_desconhecido_fica_intacto(self, criar_cliente):
        assert render_message("Oi {name}, use {cupom}", criar_cliente("1", name="Ana")) == "Oi Ana, use {cupom}"

    def test_template_malformado_e_mantido(self, criar_cliente):
        assert render_message("Oferta {name", criar_cliente("1")) == "Oferta {name"

    def test_concurrency_invalida(self, store):
        with pytest.raises(ValueError):
            DeliverySimulator(store, concurrency=0)
