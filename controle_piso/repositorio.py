# controle_piso/repositorio.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from controle_piso.db_core import criar_sessionmaker
from controle_piso.erros import FalhaBuscaTransitoria, FalhaEscrita
from controle_piso.models import (
    Base,
    Processo,
    Posto,
    Produto,
    OrdemProducao,
    Funcionario,
    TimerProducao,
    RegistroProducaoDB,
    MembroEquipe,
    NaoConformidade,
    STATUS_ATIVOS,
    STATUS_EM_PROGRESSO,
    STATUS_PAUSADO,
    STATUS_FINALIZADO,
    ORDEM_EM_PROCESSO,
    agora_utc,
)
from controle_piso.progresso import tempo_decorrido, calcular_razao_eficiencia
from controle_piso.snapshots import PostoTrabalho, OrdemResumo, RegistroProducao, TimerAtivo

logger = logging.getLogger(__name__)

CATEGORIAS_DEFEITO = (
    "Avería de costura",
    "Error de corte",
    "Defecto de material",
    "Fallo en bordado",
    "Otro",
)
CATEGORIA_OUTRO = "Otro"


def _id_valido(valor) -> bool:
    return isinstance(valor, int) and not isinstance(valor, bool)


def _ordem_resumo(ordem: OrdemProducao | None) -> OrdemResumo | None:
    if ordem is None:
        return None
    produto = ordem.produto
    return OrdemResumo(
        id=ordem.id,
        codigo=ordem.code,
        quantidade_total=int(ordem.total_quantity or 0),
        status=ordem.status,
        produto_id=ordem.product_id,
        produto_nome=produto.name if produto else None,
        produto_referencia=produto.reference if produto else None,
    )


class RepositorioPiso:
    """Consultas e escritas do chão de fábrica. Uma sessão por operação."""

    def __init__(self, engine, relogio=agora_utc, criar_tabelas: bool = False):
        if criar_tabelas:
            Base.metadata.create_all(bind=engine)
        self.SessionLocal = criar_sessionmaker(engine)
        self.relogio = relogio

    # ----------------------------
    # Infra de sessão
    # ----------------------------

    @contextmanager
    def _leitura(self, descricao: str):
        session = self.SessionLocal()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error("[Repositorio] Falha ao consultar %s: %s", descricao, e)
            raise FalhaBuscaTransitoria(f"Não foi possível carregar {descricao}.") from e
        finally:
            session.close()

    @contextmanager
    def _escrita(self, descricao: str):
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except FalhaEscrita:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("[Repositorio] Falha ao %s: %s", descricao, e)
            raise FalhaEscrita(f"Não foi possível {descricao}.") from e
        finally:
            session.close()

    @staticmethod
    def _timer(session, timer_id) -> TimerProducao:
        if not _id_valido(timer_id):
            raise FalhaEscrita(f"Timer inválido: {timer_id!r}")
        timer = session.get(TimerProducao, timer_id)
        if timer is None:
            raise FalhaEscrita(f"Timer {timer_id} não encontrado.")
        return timer

    # ----------------------------
    # Leituras da visão
    # ----------------------------

    def listar_postos(self) -> list[PostoTrabalho]:
        with self._leitura("as estações de trabalho") as session:
            postos = session.query(Posto).order_by(Posto.name).all()
            return [
                PostoTrabalho(id=p.id, nome=p.name, processo=p.processo.name if p.processo else None)
                for p in postos
            ]

    def listar_timers_ativos(self) -> list[TimerAtivo]:
        agora = self.relogio()
        with self._leitura("os registros de produção") as session:
            timers = (
                session.query(TimerProducao)
                .filter(TimerProducao.status.in_(STATUS_ATIVOS))
                .order_by(TimerProducao.id)
                .all()
            )
            return [self._timer_ativo(t, agora) for t in timers]

    def _timer_ativo(self, t: TimerProducao, agora: datetime) -> TimerAtivo:
        registros = [RegistroProducao(unidades=r.produced_units, registrado_em=r.log_time) for r in t.registros]
        produzido = sum(r.unidades for r in registros)
        minutos = tempo_decorrido(t.start_time, t.status, t.total_stopped_minutes, t.end_time, agora).total_minutos
        sam = t.ordem.produto.total_sam if t.ordem is not None and t.ordem.produto is not None else None

        return TimerAtivo(
            id=t.id,
            posto_id=t.workstation_id,
            status=t.status,
            inicio=t.start_time,
            fim=t.end_time,
            ordem=_ordem_resumo(t.ordem),
            equipe=[m.funcionario.full_name for m in t.equipe if m.funcionario is not None],
            registros=registros,
            razao_eficiencia=calcular_razao_eficiencia(produzido, sam, minutos),
            minutos_parados=float(t.total_stopped_minutes or 0.0),
            motivo_parada=t.stop_reason,
        )

    # ----------------------------
    # Leituras dos formulários
    # ----------------------------

    def listar_registros(self, timer_id) -> list[dict]:
        with self._leitura("os avanços registrados") as session:
            registros = (
                session.query(RegistroProducaoDB)
                .filter_by(timer_id=timer_id)
                .order_by(RegistroProducaoDB.log_time.desc())
                .all()
            )
            return [
                {
                    "id": r.id,
                    "unidades": r.produced_units,
                    "registrado_em": r.log_time.isoformat() if r.log_time else None,
                    "notas": r.notes,
                }
                for r in registros
            ]

    def listar_equipe(self, timer_id) -> list[dict]:
        with self._leitura("a equipe atual") as session:
            membros = session.query(MembroEquipe).filter_by(timer_id=timer_id).all()
            return [
                {"id": m.employee_id, "nome": m.funcionario.full_name if m.funcionario else None}
                for m in membros
            ]

    def listar_funcionarios_ativos(self) -> list[dict]:
        with self._leitura("os funcionários") as session:
            funcionarios = (
                session.query(Funcionario)
                .filter_by(status="Activo")
                .order_by(Funcionario.full_name)
                .all()
            )
            return [{"id": f.id, "nome": f.full_name} for f in funcionarios]

    def buscar_ordens_em_processo(self, codigo: str) -> list[OrdemResumo]:
        codigo = (codigo or "").strip()
        if not codigo:
            return []
        with self._leitura("as ordens de produção") as session:
            ordens = (
                session.query(OrdemProducao)
                .filter(OrdemProducao.status == ORDEM_EM_PROCESSO)
                .filter(OrdemProducao.code.ilike(f"%{codigo}%"))
                .order_by(OrdemProducao.code)
                .all()
            )
            return [_ordem_resumo(o) for o in ordens]

    def linhas_progresso_ordens(self, status: str = ORDEM_EM_PROCESSO) -> list[dict]:
        """
        Uma linha por (ordem, timer) com unidades produzidas e eficiência.
        Ordens sem nenhum timer entram com processo None e zero unidades.
        """
        agora = self.relogio()
        with self._leitura("o avanço das OPs ativas") as session:
            ordens = session.query(OrdemProducao).filter(OrdemProducao.status == status).order_by(OrdemProducao.code).all()
            ids = [o.id for o in ordens]
            timers = (
                session.query(TimerProducao).filter(TimerProducao.production_order_id.in_(ids)).all()
                if ids else []
            )

            por_ordem = {}
            for t in timers:
                por_ordem.setdefault(t.production_order_id, []).append(t)

            linhas = []
            for o in ordens:
                base = {
                    "ordem_id": o.id,
                    "codigo": o.code,
                    "produto": o.produto.name if o.produto else None,
                    "quantidade_total": int(o.total_quantity or 0),
                }
                timers_ordem = por_ordem.get(o.id, [])
                if not timers_ordem:
                    linhas.append({**base, "processo": None, "unidades": 0, "eficiencia": None})
                    continue
                for t in timers_ordem:
                    posto = session.get(Posto, t.workstation_id)
                    ativo = self._timer_ativo(t, agora)
                    linhas.append({
                        **base,
                        "processo": posto.processo.name if posto and posto.processo else None,
                        "unidades": ativo.total_produzido,
                        "eficiencia": ativo.razao_eficiencia,
                    })
            return linhas

    def linhas_producao(self, codigo=None, produto=None, processo=None, status=None) -> list[dict]:
        """
        Uma linha por timer (qualquer status) para a tabela de produção.
        Filtros por igualdade; vazio ou None = sem filtro.
        """
        agora = self.relogio()
        with self._leitura("os dados de produção") as session:
            q = (
                session.query(TimerProducao, Posto, Funcionario)
                .join(Posto, TimerProducao.workstation_id == Posto.id)
                .outerjoin(Processo, Posto.process_id == Processo.id)
                .outerjoin(Funcionario, TimerProducao.employee_id == Funcionario.id)
                .outerjoin(OrdemProducao, TimerProducao.production_order_id == OrdemProducao.id)
                .outerjoin(Produto, OrdemProducao.product_id == Produto.id)
            )
            if codigo:
                q = q.filter(OrdemProducao.code == codigo)
            if produto:
                q = q.filter(Produto.name == produto)
            if processo:
                q = q.filter(Processo.name == processo)
            if status:
                q = q.filter(OrdemProducao.status == status)

            linhas = []
            for t, posto, funcionario in q.order_by(TimerProducao.start_time.desc(), TimerProducao.id.desc()).all():
                ativo = self._timer_ativo(t, agora)
                ordem = ativo.ordem
                linhas.append({
                    "timer_id": t.id,
                    "posto": posto.name,
                    "funcionario": funcionario.full_name if funcionario else None,
                    "ordem_codigo": ordem.codigo if ordem else None,
                    "produto": ordem.produto_nome if ordem else None,
                    "processo": posto.processo.name if posto.processo else None,
                    "inicio": t.start_time.isoformat() if t.start_time else None,
                    "fim": t.end_time.isoformat() if t.end_time else None,
                    "status_timer": t.status,
                    "unidades": ativo.total_produzido,
                    "quantidade_total": ordem.quantidade_total if ordem else 0,
                    "eficiencia": ativo.razao_eficiencia,
                    "status_ordem": ordem.status if ordem else None,
                })
            return linhas

    def opcoes_filtro_producao(self) -> dict:
        with self._leitura("as opções de filtro") as session:
            return {
                "ordens": [c for (c,) in session.query(OrdemProducao.code).order_by(OrdemProducao.code).all()],
                "produtos": [n for (n,) in session.query(Produto.name).distinct().order_by(Produto.name).all()],
                "processos": [n for (n,) in session.query(Processo.name).distinct().order_by(Processo.name).all()],
            }

    # ----------------------------
    # Escritas (ações do card do posto)
    # ----------------------------

    def iniciar_timer(self, posto_id, ordem_id, funcionarios_ids) -> int:
        """Cria o timer já em progresso com a equipe. O primeiro operário é o principal."""
        if funcionarios_ids is None:
            funcionarios_ids = []
        if not isinstance(funcionarios_ids, (list, tuple)) or not all(_id_valido(f) for f in funcionarios_ids):
            raise FalhaEscrita("Lista de operários inválida.")
        ids = list(dict.fromkeys(funcionarios_ids))
        if not ids or not ordem_id:
            raise FalhaEscrita("Selecione pelo menos um operário e uma ordem de produção.")
        if not _id_valido(posto_id) or not _id_valido(ordem_id):
            raise FalhaEscrita("Estação ou ordem de produção inválida.")

        with self._escrita("iniciar a produção") as session:
            if session.get(Posto, posto_id) is None:
                raise FalhaEscrita(f"Estação {posto_id} não encontrada.")
            ordem = session.get(OrdemProducao, ordem_id)
            if ordem is None:
                raise FalhaEscrita(f"Ordem de produção {ordem_id} não encontrada.")
            ocupado = (
                session.query(TimerProducao)
                .filter(TimerProducao.workstation_id == posto_id, TimerProducao.status.in_(STATUS_ATIVOS))
                .first()
            )
            if ocupado:
                raise FalhaEscrita("A estação já tem uma produção ativa.")

            timer = TimerProducao(
                workstation_id=posto_id,
                employee_id=ids[0],
                production_order_id=ordem.id,
                start_time=self.relogio(),
                status=STATUS_EM_PROGRESSO,
                total_stopped_minutes=0.0,
            )
            session.add(timer)
            session.flush()
            for funcionario_id in ids:
                session.add(MembroEquipe(timer_id=timer.id, employee_id=funcionario_id))
            timer_id = timer.id

        logger.info("[Repositorio] Produção iniciada: posto=%s ordem=%s timer=%s", posto_id, ordem_id, timer_id)
        return timer_id

    def pausar_timer(self, timer_id, motivo: str) -> None:
        motivo = motivo.strip() if isinstance(motivo, str) else ""
        if not motivo:
            raise FalhaEscrita("Informe o motivo da pausa.")
        with self._escrita("pausar a produção") as session:
            timer = self._timer(session, timer_id)
            if timer.status != STATUS_EM_PROGRESSO:
                raise FalhaEscrita("Só é possível pausar uma produção em progresso.")
            timer.status = STATUS_PAUSADO
            timer.stop_reason = motivo
            timer.end_time = self.relogio()

    def retomar_timer(self, timer_id) -> None:
        with self._escrita("retomar a produção") as session:
            timer = self._timer(session, timer_id)
            if timer.status != STATUS_PAUSADO:
                raise FalhaEscrita("Só é possível retomar uma produção pausada.")
            agora = self.relogio()
            parado = (agora - timer.end_time).total_seconds() / 60 if timer.end_time else 0.0
            timer.total_stopped_minutes = float(timer.total_stopped_minutes or 0.0) + max(0.0, parado)
            timer.status = STATUS_EM_PROGRESSO
            timer.end_time = None
            timer.stop_reason = None

    def finalizar_timer(self, timer_id) -> None:
        with self._escrita("finalizar a produção") as session:
            timer = self._timer(session, timer_id)
            if timer.status not in STATUS_ATIVOS:
                raise FalhaEscrita("A produção já não está ativa.")
            if sum(r.produced_units for r in timer.registros) == 0:
                raise FalhaEscrita("Não é possível finalizar uma produção sem unidades registradas.")
            if timer.status != STATUS_PAUSADO or timer.end_time is None:
                timer.end_time = self.relogio()
            timer.status = STATUS_FINALIZADO

    def registrar_avanco(self, timer_id, unidades, notas: str = "Avance rápido") -> int:
        try:
            unidades = int(unidades)
        except (TypeError, ValueError):
            unidades = 0
        if unidades <= 0:
            raise FalhaEscrita("Informe um número positivo de unidades.")

        with self._escrita("registrar o avanço") as session:
            timer = self._timer(session, timer_id)
            if timer.status not in STATUS_ATIVOS:
                raise FalhaEscrita("A produção já não está ativa.")
            registro = RegistroProducaoDB(
                timer_id=timer.id,
                log_time=self.relogio(),
                produced_units=unidades,
                notes=notas,
            )
            session.add(registro)
            session.flush()
            return registro.id

    def adicionar_membro(self, timer_id, funcionario_id) -> None:
        if not _id_valido(funcionario_id):
            raise FalhaEscrita(f"Funcionário inválido: {funcionario_id!r}")
        with self._escrita("adicionar o operário") as session:
            self._timer(session, timer_id)
            if session.get(Funcionario, funcionario_id) is None:
                raise FalhaEscrita(f"Funcionário {funcionario_id} não encontrado.")
            if session.get(MembroEquipe, (timer_id, funcionario_id)) is not None:
                raise FalhaEscrita("O operário já está na equipe.")
            session.add(MembroEquipe(timer_id=timer_id, employee_id=funcionario_id))

    def remover_membro(self, timer_id, funcionario_id) -> None:
        """A equipe nunca fica vazia: um timer com produção registrada precisa de alguém responsável."""
        if not _id_valido(funcionario_id):
            raise FalhaEscrita(f"Funcionário inválido: {funcionario_id!r}")
        with self._escrita("remover o operário") as session:
            self._timer(session, timer_id)
            membro = session.get(MembroEquipe, (timer_id, funcionario_id))
            if membro is None:
                raise FalhaEscrita("O operário não está na equipe.")
            tamanho = session.query(MembroEquipe).filter_by(timer_id=timer_id).count()
            if tamanho <= 1:
                raise FalhaEscrita("A equipe precisa ter pelo menos um operário.")
            session.delete(membro)

    def reportar_nao_conformidade(
        self,
        timer_id,
        quantidade,
        categoria: str,
        processo_responsavel_id,
        descricao_outro: str | None = None,
        notas: str | None = None,
        usuario_id=None,
    ) -> int:
        try:
            quantidade = int(quantidade)
        except (TypeError, ValueError):
            quantidade = 0
        if quantidade <= 0 or not categoria or not _id_valido(processo_responsavel_id):
            raise FalhaEscrita("Quantidade, categoria e processo são obrigatórios.")
        if categoria not in CATEGORIAS_DEFEITO:
            raise FalhaEscrita(f"Categoria inválida: {categoria}")
        if categoria == CATEGORIA_OUTRO and not (isinstance(descricao_outro, str) and descricao_outro.strip()):
            raise FalhaEscrita('Descreva a categoria "Otro".')

        with self._escrita("registrar a não conformidade") as session:
            self._timer(session, timer_id)
            nc = NaoConformidade(
                production_timer_id=timer_id,
                reported_by_user_id=str(usuario_id) if usuario_id is not None else None,
                quantity=quantidade,
                category=categoria,
                category_other_description=descricao_outro if categoria == CATEGORIA_OUTRO else None,
                responsible_process_id=processo_responsavel_id,
                notes=notas,
                created_at=self.relogio(),
            )
            session.add(nc)
            session.flush()
            return nc.id

    def excluir_timer(self, timer_id) -> None:
        """Elimina o registro de produção com avanços, equipe e não conformidades."""
        with self._escrita("eliminar o registro de produção") as session:
            timer = self._timer(session, timer_id)
            dependentes = (
                (RegistroProducaoDB, RegistroProducaoDB.timer_id),
                (MembroEquipe, MembroEquipe.timer_id),
                (NaoConformidade, NaoConformidade.production_timer_id),
            )
            for modelo, coluna in dependentes:
                for obj in session.query(modelo).filter(coluna == timer.id).all():
                    session.delete(obj)
            session.delete(timer)
        logger.info("[Repositorio] Registro de produção eliminado: timer=%s", timer_id)
