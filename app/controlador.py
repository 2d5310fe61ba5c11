# app/controlador.py
import logging
import threading
from enum import Enum

from controle_piso.configuracoes import tabelas_piso
from controle_piso.erros import ErroControlePiso
from controle_piso.snapshots import construir_snapshots

logger = logging.getLogger(__name__)


class EstadoVisao(Enum):
    IDLE = 0
    LOADING = 1
    READY = 2
    UNMOUNTED = 3


class ControladorVisaoPostos:
    """
    Ciclo buscar-e-assinar de uma visão montada do chão de fábrica.

    - Toda notificação do feed dispara uma busca completa (sem debounce).
    - Cada busca recebe um número de sequência; só o resultado da busca emitida
      por último é aplicado, resultados de buscas superadas são descartados.
    - Falha na busca vigente: volta a READY mantendo o último snapshot bom e avisa,
      sem retry automático.
    - Após desmontar: assinatura liberada uma única vez, resultados pendentes descartados.
    """

    def __init__(self, repositorio, feed, spawn, ao_atualizar, ao_notificar=None, tabelas=tabelas_piso):
        self.repositorio = repositorio
        self.feed = feed
        self._spawn = spawn                  # ex: socketio.start_background_task
        self._ao_atualizar = ao_atualizar
        self._ao_notificar = ao_notificar
        self.tabelas = tuple(tabelas)

        self._lock = threading.RLock()
        self.estado = EstadoVisao.IDLE
        self._snapshots = []
        self._ultima_emitida = 0
        self._assinatura = None

    # ----------------------------
    # Ciclo de vida
    # ----------------------------

    def montar(self):
        with self._lock:
            if self.estado is not EstadoVisao.IDLE:
                return
            try:
                self._assinatura = self.feed.assinar(self.tabelas, self._ao_mudar)
            except Exception as e:
                logger.error("[Controlador] Falha ao assinar %s: %s", self.tabelas, e)
                self._notificar("Não foi possível acompanhar as mudanças em tempo real.")
        self.atualizar()

    def desmontar(self):
        with self._lock:
            if self.estado is EstadoVisao.UNMOUNTED:
                return
            self.estado = EstadoVisao.UNMOUNTED
            assinatura, self._assinatura = self._assinatura, None
        if assinatura is not None:
            assinatura.liberar()

    def _ao_mudar(self, mudanca=None):
        self.atualizar()

    def atualizar(self):
        """Emite uma nova busca. Retorna o número da busca, ou None se desmontado."""
        with self._lock:
            if self.estado is EstadoVisao.UNMOUNTED:
                return None
            self._ultima_emitida += 1
            busca_id = self._ultima_emitida
            self.estado = EstadoVisao.LOADING
        self._spawn(self._buscar, busca_id)
        return busca_id

    # ----------------------------
    # Busca
    # ----------------------------

    def _buscar(self, busca_id):
        try:
            postos = self.repositorio.listar_postos()
            timers = self.repositorio.listar_timers_ativos()
        except Exception as e:
            self._falhou(busca_id, e)
            return
        # montagem síncrona: os dois resultados são do mesmo ciclo
        self._aplicar(busca_id, construir_snapshots(postos, timers))

    def _vigente(self, busca_id) -> bool:
        return self.estado is not EstadoVisao.UNMOUNTED and busca_id == self._ultima_emitida

    def _aplicar(self, busca_id, snapshots) -> bool:
        with self._lock:
            if not self._vigente(busca_id):
                logger.debug("[Controlador] Resultado da busca %s descartado", busca_id)
                return False
            self._snapshots = snapshots
            self.estado = EstadoVisao.READY
            self._ao_atualizar(list(snapshots))
            return True

    def _falhou(self, busca_id, erro) -> bool:
        with self._lock:
            if not self._vigente(busca_id):
                logger.debug("[Controlador] Falha da busca %s descartada: %s", busca_id, erro)
                return False
            logger.warning("[Controlador] Busca %s falhou: %s", busca_id, erro)
            self.estado = EstadoVisao.READY
            if isinstance(erro, ErroControlePiso) and str(erro):
                self._notificar(str(erro))
            else:
                self._notificar("Não foi possível atualizar as estações de trabalho.")
            return True

    def _notificar(self, mensagem):
        if callable(self._ao_notificar):
            self._ao_notificar(mensagem)

    # ----------------------------
    # Consulta
    # ----------------------------

    @property
    def snapshots(self):
        with self._lock:
            return list(self._snapshots)

    @property
    def assinatura(self):
        return self._assinatura
