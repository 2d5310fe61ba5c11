# app/socketio_gateway.py
import logging

from flask import request

from app.comandos import executar_comando
from app.controlador import ControladorVisaoPostos
from controle_piso.configuracoes import tabelas_producao
from controle_piso.erros import FalhaBuscaTransitoria, FalhaEscrita
from controle_piso.relatorios import tabela_producao
from controle_piso.snapshots import snapshot_para_dict

logger = logging.getLogger(__name__)

COR_ERRO = "#dc3545"
COR_AVISO = "#ffc107"
COR_OK = "#00a80e"


def register_socketio_handlers(socketio, repositorio, feed):
    controladores = {}  # sid -> ControladorVisaoPostos
    assinaturas_producao = {}  # sid -> Assinatura da tabela de produção

    def _desmontar(sid):
        ctrl = controladores.pop(sid, None)
        if ctrl is not None:
            ctrl.desmontar()

    def _cancelar_producao(sid):
        assinatura = assinaturas_producao.pop(sid, None)
        if assinatura is not None:
            assinatura.liberar()

    def _emitir_producao(sid, filtros):
        try:
            linhas = tabela_producao(repositorio.linhas_producao(**filtros))
        except FalhaBuscaTransitoria as e:
            socketio.emit("piso/aviso", {'mensagem': str(e), 'cor': COR_AVISO, 'tempo': 3000}, room=sid)
            return
        socketio.emit("producao/dados", linhas, room=sid)

    @socketio.on("piso/montar")
    def montar_piso():
        sid = request.sid
        _desmontar(sid)

        def ao_atualizar(snapshots):
            socketio.emit("piso/snapshots", [snapshot_para_dict(s) for s in snapshots], room=sid)

        def ao_notificar(mensagem):
            socketio.emit("piso/aviso", {'mensagem': mensagem, 'cor': COR_AVISO, 'tempo': 3000}, room=sid)

        ctrl = ControladorVisaoPostos(
            repositorio,
            feed,
            spawn=socketio.start_background_task,
            ao_atualizar=ao_atualizar,
            ao_notificar=ao_notificar,
        )
        controladores[sid] = ctrl
        ctrl.montar()

    @socketio.on("piso/desmontar")
    def desmontar_piso():
        _desmontar(request.sid)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        _desmontar(request.sid)
        _cancelar_producao(request.sid)

    @socketio.on("piso/atualizar")
    def atualizar_piso():
        ctrl = controladores.get(request.sid)
        if ctrl is not None:
            ctrl.atualizar()

    @socketio.on("piso/comando")
    def comando_piso(data):
        sid = request.sid
        if not isinstance(data, dict):
            data = {}
        try:
            resposta = executar_comando(repositorio, data.get("cmd"), data.get("args"))
        except FalhaEscrita as e:
            logger.info("[Gateway] Comando %s recusado: %s", data.get("cmd"), e)
            socketio.emit("piso/erro", {'mensagem': str(e), 'cor': COR_ERRO, 'tempo': 3000}, room=sid)
            return
        socketio.emit("piso/ok", {**resposta, 'cor': COR_OK, 'tempo': 1000}, room=sid)

    # Tabela de produção: nova consulta a cada mudança em timers, avanços ou OPs
    @socketio.on("producao/assinar")
    def assinar_producao(data=None):
        sid = request.sid
        _cancelar_producao(sid)
        if not isinstance(data, dict):
            data = {}
        filtros = {}
        for chave in ("codigo", "produto", "processo", "status"):
            valor = data.get(chave)
            filtros[chave] = valor if isinstance(valor, str) and valor else None

        def ao_mudar(mudanca):
            socketio.start_background_task(_emitir_producao, sid, filtros)

        assinaturas_producao[sid] = feed.assinar(tabelas_producao, ao_mudar)
        socketio.start_background_task(_emitir_producao, sid, filtros)

    @socketio.on("producao/cancelar")
    def cancelar_producao():
        _cancelar_producao(request.sid)

    return controladores
