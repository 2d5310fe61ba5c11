# controle_piso/models.py
from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Valores gravados em production_timers.status
STATUS_PENDENTE = "Pendiente"
STATUS_EM_PROGRESSO = "En Progreso"
STATUS_PAUSADO = "Pausado"
STATUS_FINALIZADO = "Finalizado"
STATUS_ATIVOS = (STATUS_EM_PROGRESSO, STATUS_PAUSADO)

# Valores gravados em production_orders.status
ORDEM_EM_PROCESSO = "En Proceso"


def agora_utc() -> datetime:
    """Instante atual em UTC, sem fuso (as colunas DateTime são naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Processo(Base):
    __tablename__ = "processes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)


class Posto(Base):
    __tablename__ = "workstations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    process_id = Column(Integer, ForeignKey("processes.id"), nullable=True)

    processo = relationship("Processo", lazy="joined")


class Produto(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    reference = Column(String(64), nullable=True)
    # minutos-padrão (SAM) somados de todas as operações do produto
    total_sam = Column(Float, nullable=True, default=0.0)


class OrdemProducao(Base):
    __tablename__ = "production_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, nullable=False, index=True)  # ex: OP-000123
    total_quantity = Column(Integer, nullable=False, default=0)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    status = Column(String(30), nullable=False, default=ORDEM_EM_PROCESSO)

    produto = relationship("Produto", lazy="joined")


class Funcionario(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(120), nullable=False)
    status = Column(String(20), nullable=False, default="Activo")


class TimerProducao(Base):
    __tablename__ = "production_timers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workstation_id = Column(Integer, ForeignKey("workstations.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # operário principal
    production_order_id = Column(Integer, ForeignKey("production_orders.id"), nullable=True)

    status = Column(String(20), nullable=False, default=STATUS_PENDENTE)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    stop_reason = Column(Text, nullable=True)
    total_stopped_minutes = Column(Float, nullable=False, default=0.0)

    ordem = relationship("OrdemProducao", lazy="joined")
    registros = relationship("RegistroProducaoDB", lazy="selectin", order_by="RegistroProducaoDB.log_time")
    equipe = relationship("MembroEquipe", lazy="selectin")


class RegistroProducaoDB(Base):
    """Log de avanço (append-only). Total do timer = soma de produced_units."""
    __tablename__ = "production_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timer_id = Column(Integer, ForeignKey("production_timers.id"), nullable=False, index=True)
    log_time = Column(DateTime, nullable=False, default=agora_utc)
    produced_units = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)


class MembroEquipe(Base):
    __tablename__ = "production_timer_employees"

    timer_id = Column(Integer, ForeignKey("production_timers.id"), primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), primary_key=True)

    funcionario = relationship("Funcionario", lazy="joined")


class NaoConformidade(Base):
    __tablename__ = "non_conformities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    production_timer_id = Column(Integer, ForeignKey("production_timers.id"), nullable=False)
    reported_by_user_id = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    category = Column(String(60), nullable=False)
    category_other_description = Column(Text, nullable=True)
    responsible_process_id = Column(Integer, ForeignKey("processes.id"), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=agora_utc)


def inicializa_tabelas(engine) -> None:
    """Cria as tabelas, se ainda não existirem."""
    Base.metadata.create_all(bind=engine)
