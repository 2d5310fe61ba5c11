# controle_piso/feed.py
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy import event, inspect

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_CHAVE_PENDENTES = "mudancas_pendentes"


@dataclass(frozen=True)
class Mudanca:
    tabela: str
    evento: str                       # INSERT | UPDATE | DELETE
    linha: Dict = field(default_factory=dict)
    origem: Optional[str] = None      # None = esta instância; "mqtt" = outra instância


class Assinatura:
    """Handle devolvido por FeedMudancas.assinar. liberar() é idempotente."""

    def __init__(self, feed, id_, tabelas, ao_mudar, filtro):
        self._feed = feed
        self.id = id_
        self.tabelas = frozenset(tabelas) if tabelas is not None else None
        self.ao_mudar = ao_mudar
        self.filtro = dict(filtro or {})
        self.ativa = True

    def aceita(self, mudanca: Mudanca) -> bool:
        if self.tabelas is not None and mudanca.tabela not in self.tabelas:
            return False
        return all(mudanca.linha.get(col) == valor for col, valor in self.filtro.items())

    def liberar(self) -> bool:
        """Retorna True só na primeira liberação."""
        return self._feed._remover(self)

    def __repr__(self):
        tabelas = sorted(self.tabelas) if self.tabelas is not None else "*"
        return f"<Assinatura {self.id} {tabelas} ativa={self.ativa}>"


class FeedMudancas:
    """
    Notificações de insert/update/delete por tabela.
    - Thread-safe (socketio + callbacks MQTT)
    - Assinatura liberada nunca recebe entrega posterior (checagem imediatamente antes da chamada)
    - Mudanças de sessões SQLAlchemy só são publicadas após o commit
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._assinaturas: Dict[int, Assinatura] = {}
        self._seq = itertools.count(1)

    # ----------------------------
    # Assinaturas
    # ----------------------------

    def assinar(
        self,
        tabelas: Optional[Iterable[str]],
        ao_mudar: Callable[[Mudanca], None],
        filtro: Optional[Dict] = None,
    ) -> Assinatura:
        """tabelas=None assina todas. filtro = {coluna: valor} comparado com a linha alterada."""
        with self._lock:
            assinatura = Assinatura(self, next(self._seq), tabelas, ao_mudar, filtro)
            self._assinaturas[assinatura.id] = assinatura
        logger.debug("[Feed] %r criada", assinatura)
        return assinatura

    def _remover(self, assinatura: Assinatura) -> bool:
        with self._lock:
            if not assinatura.ativa:
                return False
            assinatura.ativa = False
            self._assinaturas.pop(assinatura.id, None)
        logger.debug("[Feed] %r liberada", assinatura)
        return True

    def total_assinaturas(self) -> int:
        with self._lock:
            return len(self._assinaturas)

    # ----------------------------
    # Publicação
    # ----------------------------

    def publicar(self, mudanca: Mudanca) -> int:
        """Entrega a mudança às assinaturas interessadas. Retorna quantas receberam."""
        with self._lock:
            candidatas = list(self._assinaturas.values())

        entregues = 0
        for assinatura in candidatas:
            if not assinatura.ativa or not assinatura.aceita(mudanca):
                continue
            try:
                assinatura.ao_mudar(mudanca)
                entregues += 1
            except Exception:
                logger.exception("[Feed] Erro no callback de %r (%s %s)", assinatura, mudanca.evento, mudanca.tabela)
        return entregues

    # ----------------------------
    # Integração SQLAlchemy
    # ----------------------------

    def conectar_sessoes(self, alvo) -> None:
        """alvo: sessionmaker (ou classe Session) cujas escritas alimentam o feed."""
        event.listen(alvo, "after_flush", self._ao_flush)
        event.listen(alvo, "after_commit", self._ao_commit)
        event.listen(alvo, "after_rollback", self._ao_rollback)

    def _ao_flush(self, session, flush_context) -> None:
        pendentes = session.info.setdefault(_CHAVE_PENDENTES, [])
        for evento, objetos in ((INSERT, session.new), (UPDATE, session.dirty), (DELETE, session.deleted)):
            for obj in objetos:
                tabela = getattr(getattr(obj, "__table__", None), "name", None)
                if tabela:
                    pendentes.append(Mudanca(tabela, evento, _linha_para_dict(obj)))

    def _ao_commit(self, session) -> None:
        pendentes = session.info.pop(_CHAVE_PENDENTES, [])
        for mudanca in pendentes:
            self.publicar(mudanca)

    def _ao_rollback(self, session) -> None:
        session.info.pop(_CHAVE_PENDENTES, None)


def _linha_para_dict(obj) -> Dict:
    # lê só o que já está carregado: objeto deletado não pode disparar SELECT
    estado = inspect(obj)
    return {attr.key: estado.dict.get(attr.key) for attr in estado.mapper.column_attrs}
