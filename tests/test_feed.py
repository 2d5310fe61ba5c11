import pytest

from controle_piso.feed import FeedMudancas, Mudanca, INSERT, UPDATE
from controle_piso.models import RegistroProducaoDB


@pytest.fixture
def feed(repositorio):
    feed = FeedMudancas()
    feed.conectar_sessoes(repositorio.SessionLocal)
    return feed


@pytest.fixture
def timer_id(repositorio, dados):
    return repositorio.iniciar_timer(dados.modulo_1, dados.op1, [dados.ana])


def test_assinatura_recebe_somente_tabelas_pedidas():
    feed = FeedMudancas()
    recebidas = []
    feed.assinar(["production_logs"], recebidas.append)

    assert feed.publicar(Mudanca("production_logs", INSERT, {"id": 1})) == 1
    assert feed.publicar(Mudanca("products", INSERT, {"id": 1})) == 0
    assert [m.tabela for m in recebidas] == ["production_logs"]


def test_filtro_por_coluna():
    feed = FeedMudancas()
    recebidas = []
    feed.assinar(["production_logs"], recebidas.append, filtro={"timer_id": 7})

    feed.publicar(Mudanca("production_logs", INSERT, {"timer_id": 8}))
    feed.publicar(Mudanca("production_logs", INSERT, {"timer_id": 7}))
    assert [m.linha["timer_id"] for m in recebidas] == [7]


def test_assinatura_liberada_nao_recebe_mais():
    feed = FeedMudancas()
    recebidas = []
    assinatura = feed.assinar(None, recebidas.append)

    assert assinatura.liberar() is True
    assert assinatura.liberar() is False
    feed.publicar(Mudanca("production_timers", UPDATE, {}))
    assert recebidas == []
    assert feed.total_assinaturas() == 0


def test_liberar_durante_entrega_bloqueia_entregas_seguintes():
    feed = FeedMudancas()
    recebidas = []
    segunda = None

    def primeira_cb(mudanca):
        segunda.liberar()

    feed.assinar(None, primeira_cb)
    segunda = feed.assinar(None, recebidas.append)

    feed.publicar(Mudanca("production_timers", UPDATE, {}))
    assert recebidas == []


def test_erro_em_callback_nao_impede_os_demais():
    feed = FeedMudancas()
    recebidas = []

    def quebra(mudanca):
        raise RuntimeError("falhou")

    feed.assinar(None, quebra)
    feed.assinar(None, recebidas.append)
    assert feed.publicar(Mudanca("production_logs", INSERT, {})) == 1
    assert len(recebidas) == 1


def test_commit_publica_insercao_de_registro(repositorio, feed, timer_id):
    recebidas = []
    feed.assinar(["production_logs"], recebidas.append)

    repositorio.registrar_avanco(timer_id, 12)

    assert len(recebidas) == 1
    mudanca = recebidas[0]
    assert mudanca.evento == INSERT
    assert mudanca.linha["timer_id"] == timer_id
    assert mudanca.linha["produced_units"] == 12
    assert mudanca.origem is None


def test_commit_publica_atualizacao_do_timer(repositorio, feed, timer_id):
    recebidas = []
    feed.assinar(["production_timers"], recebidas.append)

    repositorio.pausar_timer(timer_id, "Falta de material")

    assert [(m.evento, m.linha["status"]) for m in recebidas] == [(UPDATE, "Pausado")]


def test_rollback_nao_publica(repositorio, feed, timer_id):
    recebidas = []
    feed.assinar(None, recebidas.append)

    session = repositorio.SessionLocal()
    try:
        session.add(RegistroProducaoDB(timer_id=timer_id, produced_units=3))
        session.flush()
        session.rollback()
    finally:
        session.close()
    assert recebidas == []


def test_escrita_recusada_nao_publica(repositorio, feed, timer_id):
    from controle_piso.erros import FalhaEscrita

    recebidas = []
    feed.assinar(None, recebidas.append)
    with pytest.raises(FalhaEscrita):
        repositorio.registrar_avanco(timer_id, 0)
    assert recebidas == []
