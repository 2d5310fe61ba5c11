# controle_piso/progresso.py
"""
Indicadores derivados de contagens brutas: avanço da OP, faixa de eficiência
e tempo trabalhado de um timer. Funções puras, sem banco e sem feed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from controle_piso.models import STATUS_EM_PROGRESSO, agora_utc

LIMIAR_BOM = 0.95
LIMIAR_ATENCAO = 0.80


class FaixaEficiencia(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


def _numero_valido(valor) -> bool:
    if valor is None or isinstance(valor, bool):
        return False
    try:
        return math.isfinite(float(valor))
    except (TypeError, ValueError):
        return False


def razao_progresso(produzido, encomendado) -> float:
    """produzido / encomendado, ou 0 se não há quantidade. Sem teto: sobreprodução aparece."""
    if not _numero_valido(encomendado) or encomendado <= 0:
        return 0.0
    if not _numero_valido(produzido):
        return 0.0
    return produzido / encomendado


def percentual_eficiencia(razao) -> Optional[int]:
    """Arredonda a razão para porcentagem inteira. None quando desconhecida."""
    if not _numero_valido(razao):
        return None
    return int(round(float(razao) * 100))


def faixa_eficiencia(razao) -> FaixaEficiencia:
    if not _numero_valido(razao):
        return FaixaEficiencia.UNKNOWN
    razao = float(razao)
    if razao >= LIMIAR_BOM:
        return FaixaEficiencia.GOOD
    if razao >= LIMIAR_ATENCAO:
        return FaixaEficiencia.WARNING
    return FaixaEficiencia.CRITICAL


def calcular_razao_eficiencia(produzido, sam_total, minutos_trabalhados) -> Optional[float]:
    """
    Minutos ganhos (peças x SAM) sobre minutos trabalhados.
    Retorna None se faltar qualquer um dos três.
    """
    if not all(_numero_valido(v) for v in (produzido, sam_total, minutos_trabalhados)):
        return None
    if produzido <= 0 or sam_total <= 0 or minutos_trabalhados <= 0:
        return None
    return (produzido * sam_total) / minutos_trabalhados


@dataclass(frozen=True)
class TempoDecorrido:
    horas: int
    minutos: int
    segundos: int
    total_minutos: float

    def formatado(self) -> str:
        return f"{self.horas:02d}:{self.minutos:02d}:{self.segundos:02d}"


def tempo_decorrido(
    inicio: Optional[datetime],
    status: Optional[str],
    minutos_parados: float = 0.0,
    fim: Optional[datetime] = None,
    agora: Optional[datetime] = None,
) -> TempoDecorrido:
    """
    Tempo trabalhado do timer.
    - Em progresso: mede até agora.
    - Pausado/finalizado: mede até end_time (ou zero se não houver).
    Minutos parados são descontados; nunca negativo.
    """
    if inicio is None:
        return TempoDecorrido(0, 0, 0, 0.0)

    if status == STATUS_EM_PROGRESSO:
        termino = agora or agora_utc()
    else:
        termino = fim or inicio

    diff_s = (termino - inicio).total_seconds() - float(minutos_parados or 0.0) * 60
    total_minutos = max(0.0, diff_s / 60)

    total_segundos = int(total_minutos * 60)
    return TempoDecorrido(
        horas=total_segundos // 3600,
        minutos=(total_segundos % 3600) // 60,
        segundos=total_segundos % 60,
        total_minutos=total_minutos,
    )
