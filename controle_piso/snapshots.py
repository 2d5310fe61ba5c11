# controle_piso/snapshots.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from controle_piso.erros import AnomaliaDados
from controle_piso.models import STATUS_PENDENTE, STATUS_EM_PROGRESSO, STATUS_PAUSADO, STATUS_FINALIZADO
from controle_piso.progresso import (
    razao_progresso,
    percentual_eficiencia,
    faixa_eficiencia,
    tempo_decorrido,
)

logger = logging.getLogger(__name__)


class StatusTimer(str, Enum):
    PENDENTE = STATUS_PENDENTE
    EM_PROGRESSO = STATUS_EM_PROGRESSO
    PAUSADO = STATUS_PAUSADO
    FINALIZADO = STATUS_FINALIZADO


STATUS_ATIVOS = (StatusTimer.EM_PROGRESSO, StatusTimer.PAUSADO)


@dataclass
class PostoTrabalho:
    id: object
    nome: str
    processo: Optional[str] = None


@dataclass
class OrdemResumo:
    id: object
    codigo: str
    quantidade_total: int
    status: Optional[str] = None
    produto_id: object = None
    produto_nome: Optional[str] = None
    produto_referencia: Optional[str] = None


@dataclass
class RegistroProducao:
    unidades: int
    registrado_em: Optional[datetime] = None


@dataclass
class TimerAtivo:
    id: object
    posto_id: object
    status: str
    inicio: Optional[datetime] = None
    fim: Optional[datetime] = None
    ordem: Optional[OrdemResumo] = None
    equipe: List[str] = field(default_factory=list)          # nomes dos operários
    registros: List[RegistroProducao] = field(default_factory=list)
    razao_eficiencia: Optional[float] = None                  # média móvel vinda do agregado
    minutos_parados: float = 0.0
    motivo_parada: Optional[str] = None

    @property
    def ativo(self) -> bool:
        return self.status in STATUS_ATIVOS

    @property
    def total_produzido(self) -> int:
        return sum(r.unidades for r in self.registros)


@dataclass
class SnapshotPosto:
    posto: PostoTrabalho
    timer_ativo: Optional[TimerAtivo]
    ordem: Optional[OrdemResumo]
    total_produzido: int
    total_encomendado: int
    razao_progresso: float
    razao_eficiencia: Optional[float]

    @property
    def posto_id(self):
        return self.posto.id


# ----------------------------
# Montagem
# ----------------------------

def _indexar_timers(postos_ids: set, timers: List[TimerAtivo]) -> Dict[object, TimerAtivo]:
    """
    posto_id -> timer ativo.
    - Primeiro timer de cada posto vence, os demais vão só para o log.
    - Timer de posto desconhecido (leituras não são consistentes entre si) é omitido.
    """
    por_posto: Dict[object, TimerAtivo] = {}
    for timer in timers:
        if not timer.ativo:
            continue
        if timer.posto_id not in postos_ids:
            logger.debug("[Snapshots] %s", AnomaliaDados("posto_desconhecido", timer.posto_id, timer.id))
            continue
        if timer.posto_id in por_posto:
            anomalia = AnomaliaDados(
                "timer_duplicado", timer.posto_id, timer.id,
                detalhe=f"mantido timer {por_posto[timer.posto_id].id}",
            )
            logger.warning("[Snapshots] %s", anomalia)
            continue
        por_posto[timer.posto_id] = timer
    return por_posto


def _snapshot_livre(posto: PostoTrabalho) -> SnapshotPosto:
    return SnapshotPosto(
        posto=posto,
        timer_ativo=None,
        ordem=None,
        total_produzido=0,
        total_encomendado=0,
        razao_progresso=0.0,
        razao_eficiencia=None,
    )


def construir_snapshot(posto: PostoTrabalho, timer: Optional[TimerAtivo]) -> SnapshotPosto:
    if timer is None:
        return _snapshot_livre(posto)

    ordem = timer.ordem
    produzido = timer.total_produzido
    encomendado = int(ordem.quantidade_total or 0) if ordem is not None else 0

    return SnapshotPosto(
        posto=posto,
        timer_ativo=timer,
        ordem=ordem,
        total_produzido=produzido,
        total_encomendado=encomendado,
        razao_progresso=razao_progresso(produzido, encomendado),
        razao_eficiencia=timer.razao_eficiencia,
    )


def construir_snapshots(postos: List[PostoTrabalho], timers: List[TimerAtivo]) -> List[SnapshotPosto]:
    """
    Um snapshot por posto, na ordem recebida.
    Sempre reconstruído por inteiro; não levanta erro por dado que não originou.
    """
    postos = postos or []
    timers_por_posto = _indexar_timers({p.id for p in postos}, timers or [])
    return [construir_snapshot(p, timers_por_posto.get(p.id)) for p in postos]


def indexar_por_posto(snapshots: List[SnapshotPosto]) -> Dict[object, SnapshotPosto]:
    return {s.posto_id: s for s in snapshots}


# ----------------------------
# Serialização (front)
# ----------------------------

def _iso(valor: Optional[datetime]):
    return valor.isoformat() if valor else None


def snapshot_para_dict(snapshot: SnapshotPosto, agora: Optional[datetime] = None) -> dict:
    """Payload do card do posto, no formato emitido via socketio."""
    timer = snapshot.timer_ativo
    ordem = snapshot.ordem
    faixa = faixa_eficiencia(snapshot.razao_eficiencia)

    d = {
        "posto": {
            "id": snapshot.posto.id,
            "nome": snapshot.posto.nome,
            "processo": snapshot.posto.processo,
        },
        "timer": None,
        "ordem": None,
        "total_produzido": snapshot.total_produzido,
        "total_encomendado": snapshot.total_encomendado,
        "progresso_pct": round(snapshot.razao_progresso * 100, 1),
        "eficiencia_pct": percentual_eficiencia(snapshot.razao_eficiencia),
        "eficiencia_faixa": faixa.value,
    }

    if ordem is not None:
        d["ordem"] = {
            "id": ordem.id,
            "codigo": ordem.codigo,
            "quantidade_total": ordem.quantidade_total,
            "status": ordem.status,
            "produto": ordem.produto_nome,
            "referencia": ordem.produto_referencia,
        }

    if timer is not None:
        tempo = tempo_decorrido(timer.inicio, timer.status, timer.minutos_parados, timer.fim, agora)
        status = timer.status.value if hasattr(timer.status, "value") else timer.status
        d["timer"] = {
            "id": timer.id,
            "status": status,
            "inicio": _iso(timer.inicio),
            "fim": _iso(timer.fim),
            "motivo_parada": timer.motivo_parada,
            "equipe": list(timer.equipe),
            "tamanho_equipe": len(timer.equipe),
            "tempo": tempo.formatado(),
            "tempo_minutos": round(tempo.total_minutos, 2),
        }

    return d
