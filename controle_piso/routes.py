# controle_piso/routes.py
from flask import jsonify, request

from controle_piso.erros import FalhaBuscaTransitoria, FalhaEscrita
from controle_piso.papeis import modulos_visiveis, painel_para_papel, Papel
from controle_piso.relatorios import resumo_progresso_ordens, tabela_producao
from controle_piso.snapshots import construir_snapshots, snapshot_para_dict


def configurar_rotas(app, repositorio):
    @app.errorhandler(FalhaBuscaTransitoria)
    def falha_busca(e):
        return jsonify(status='erro', mensagem=str(e)), 503

    @app.errorhandler(FalhaEscrita)
    def falha_escrita(e):
        return jsonify(status='erro', mensagem=str(e)), 400

    @app.route("/ping")
    def ping():
        return jsonify({"status": "ok"}), 200

    # Snapshot único (sem assinatura). A tela ao vivo usa o socketio.
    @app.route("/api/postos")
    def api_postos():
        snapshots = construir_snapshots(repositorio.listar_postos(), repositorio.listar_timers_ativos())
        return jsonify([snapshot_para_dict(s) for s in snapshots])

    @app.route("/api/timers/<int:timer_id>/registros")
    def api_registros(timer_id):
        return jsonify(repositorio.listar_registros(timer_id))

    @app.route("/api/timers/<int:timer_id>/equipe")
    def api_equipe(timer_id):
        return jsonify(repositorio.listar_equipe(timer_id))

    @app.route("/api/funcionarios")
    def api_funcionarios():
        return jsonify(repositorio.listar_funcionarios_ativos())

    @app.route("/api/ordens")
    def api_ordens():
        ordens = repositorio.buscar_ordens_em_processo(request.args.get("codigo", ""))
        return jsonify([
            {"id": o.id, "codigo": o.codigo, "quantidade_total": o.quantidade_total, "produto": o.produto_nome}
            for o in ordens
        ])

    @app.route("/api/progresso")
    def api_progresso():
        return jsonify(resumo_progresso_ordens(repositorio.linhas_progresso_ordens()))

    # Tabela de produção: um registro por timer, filtros por igualdade
    @app.route("/api/producao")
    def api_producao():
        linhas = repositorio.linhas_producao(
            codigo=request.args.get("codigo") or None,
            produto=request.args.get("produto") or None,
            processo=request.args.get("processo") or None,
            status=request.args.get("status") or None,
        )
        return jsonify(tabela_producao(linhas))

    @app.route("/api/producao/filtros")
    def api_producao_filtros():
        return jsonify(repositorio.opcoes_filtro_producao())

    @app.route("/api/producao/<int:timer_id>", methods=["DELETE"])
    def api_producao_excluir(timer_id):
        repositorio.excluir_timer(timer_id)
        return jsonify(status='ok', mensagem="Registro de produção eliminado."), 200

    @app.route("/api/modulos")
    def api_modulos():
        papel = request.args.get("papel", "")
        if Papel.de_texto(papel) is None:
            return jsonify(status='erro', mensagem=f"Papel desconhecido: {papel}"), 400
        return jsonify({
            "papel": papel,
            "painel": painel_para_papel(papel).value,
            "modulos": [{"id": m.id, "nome": m.nome} for m in modulos_visiveis(papel)],
        })
