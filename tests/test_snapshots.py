import logging
from datetime import datetime

from controle_piso.snapshots import (
    PostoTrabalho,
    OrdemResumo,
    RegistroProducao,
    TimerAtivo,
    StatusTimer,
    construir_snapshots,
    indexar_por_posto,
    snapshot_para_dict,
)


def _postos():
    return [
        PostoTrabalho(1, "Modulo 1", "Confección"),
        PostoTrabalho(2, "Modulo 2", "Confección"),
        PostoTrabalho(3, "Mesa Corte", "Corte"),
    ]


def _ordem(quantidade=100):
    return OrdemResumo(id=10, codigo="OP-001", quantidade_total=quantidade, status="En Proceso",
                       produto_nome="Camisa Polo", produto_referencia="CP-01")


def _timer(id_, posto_id, produzido=0, quantidade=100, status=StatusTimer.EM_PROGRESSO, eficiencia=None):
    registros = [RegistroProducao(produzido)] if produzido else []
    return TimerAtivo(
        id=id_,
        posto_id=posto_id,
        status=status,
        inicio=datetime(2024, 3, 4, 8, 0, 0),
        ordem=_ordem(quantidade),
        equipe=["Ana Ruiz"],
        registros=registros,
        razao_eficiencia=eficiencia,
    )


def test_um_snapshot_por_posto_com_ids_distintos():
    snapshots = construir_snapshots(_postos(), [_timer(100, 2, produzido=5)])
    assert len(snapshots) == 3
    assert [s.posto_id for s in snapshots] == [1, 2, 3]
    assert len(indexar_por_posto(snapshots)) == 3


def test_posto_sem_timer_fica_livre():
    por_posto = indexar_por_posto(construir_snapshots(_postos(), [_timer(100, 2)]))
    livre = por_posto[1]
    assert livre.timer_ativo is None
    assert livre.ordem is None
    assert livre.total_produzido == 0
    assert livre.total_encomendado == 0
    assert livre.razao_progresso == 0
    assert livre.razao_eficiencia is None


def test_progresso_exato_sem_teto():
    timer = _timer(100, 1, produzido=120, quantidade=100)
    snap = indexar_por_posto(construir_snapshots(_postos(), [timer]))[1]
    assert snap.timer_ativo is timer
    assert snap.total_produzido == 120
    assert snap.total_encomendado == 100
    assert snap.razao_progresso == 1.2


def test_total_produzido_soma_registros():
    timer = _timer(100, 1, quantidade=200)
    timer.registros = [RegistroProducao(30), RegistroProducao(20), RegistroProducao(50)]
    snap = construir_snapshots(_postos(), [timer])[0]
    assert snap.total_produzido == 100
    assert snap.razao_progresso == 0.5


def test_timer_duplicado_primeiro_vence(caplog):
    primeiro = _timer(100, 2, produzido=10)
    segundo = _timer(101, 2, produzido=10)
    with caplog.at_level(logging.WARNING, logger="controle_piso.snapshots"):
        snapshots = construir_snapshots(_postos(), [primeiro, segundo])

    snap = indexar_por_posto(snapshots)[2]
    assert snap.timer_ativo.id == 100
    assert all(s.timer_ativo is None or s.timer_ativo.id != 101 for s in snapshots)
    assert "timer_duplicado" in caplog.text


def test_timer_de_posto_desconhecido_e_omitido():
    snapshots = construir_snapshots(_postos(), [_timer(100, 99, produzido=3)])
    assert len(snapshots) == 3
    assert all(s.timer_ativo is None for s in snapshots)


def test_timer_sem_ordem_nao_levanta():
    timer = _timer(100, 3, produzido=7)
    timer.ordem = None
    snap = indexar_por_posto(construir_snapshots(_postos(), [timer]))[3]
    assert snap.timer_ativo is timer
    assert snap.ordem is None
    assert snap.total_produzido == 7
    assert snap.total_encomendado == 0
    assert snap.razao_progresso == 0.0


def test_timer_finalizado_nao_conta_como_ativo():
    timer = _timer(100, 1, produzido=5, status=StatusTimer.FINALIZADO)
    snap = construir_snapshots(_postos(), [timer])[0]
    assert snap.timer_ativo is None


def test_status_texto_do_banco_e_aceito():
    timer = _timer(100, 1, status="Pausado")
    assert timer.ativo
    assert construir_snapshots(_postos(), [timer])[0].timer_ativo is timer


def test_entradas_vazias():
    assert construir_snapshots([], [_timer(1, 1)]) == []
    assert construir_snapshots(None, None) == []


def test_snapshot_para_dict():
    timer = _timer(100, 1, produzido=45, quantidade=60, eficiencia=0.876)
    snap = construir_snapshots(_postos(), [timer])[0]
    d = snapshot_para_dict(snap, agora=datetime(2024, 3, 4, 9, 0, 0))

    assert d["posto"] == {"id": 1, "nome": "Modulo 1", "processo": "Confección"}
    assert d["ordem"]["codigo"] == "OP-001"
    assert d["progresso_pct"] == 75.0
    assert d["eficiencia_pct"] == 88
    assert d["eficiencia_faixa"] == "warning"
    assert d["timer"]["status"] == "En Progreso"
    assert d["timer"]["tamanho_equipe"] == 1
    assert d["timer"]["tempo"] == "01:00:00"


def test_snapshot_para_dict_posto_livre():
    d = snapshot_para_dict(construir_snapshots(_postos(), [])[2])
    assert d["timer"] is None
    assert d["ordem"] is None
    assert d["eficiencia_pct"] is None
    assert d["eficiencia_faixa"] == "unknown"
