from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from controle_piso.models import (
    inicializa_tabelas,
    Processo,
    Posto,
    Produto,
    OrdemProducao,
    Funcionario,
)
from controle_piso.repositorio import RepositorioPiso


class Relogio:
    def __init__(self, agora):
        self.agora = agora

    def __call__(self):
        return self.agora

    def avancar(self, **kwargs):
        self.agora += timedelta(**kwargs)


@pytest.fixture
def relogio():
    return Relogio(datetime(2024, 3, 4, 8, 0, 0))


@pytest.fixture
def engine():
    # uma única conexão: o banco em memória é visto também pelas tarefas em background
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    inicializa_tabelas(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repositorio(engine, relogio):
    return RepositorioPiso(engine, relogio=relogio)


@pytest.fixture
def dados(repositorio):
    session = repositorio.SessionLocal()
    try:
        corte = Processo(name="Corte")
        confeccion = Processo(name="Confección")
        session.add_all([corte, confeccion])
        session.flush()

        modulo_2 = Posto(name="Modulo 2", process_id=confeccion.id)
        modulo_1 = Posto(name="Modulo 1", process_id=confeccion.id)
        mesa = Posto(name="Mesa Corte", process_id=corte.id)
        polo = Produto(name="Camisa Polo", reference="CP-01", total_sam=1.2)
        session.add_all([modulo_2, modulo_1, mesa, polo])
        session.flush()

        op1 = OrdemProducao(code="OP-001", total_quantity=100, product_id=polo.id, status="En Proceso")
        op2 = OrdemProducao(code="OP-002", total_quantity=40, product_id=polo.id, status="En Proceso")
        op_fechada = OrdemProducao(code="OP-900", total_quantity=10, product_id=polo.id, status="Finalizada")
        ana = Funcionario(full_name="Ana Ruiz")
        beto = Funcionario(full_name="Beto Gómez")
        carla = Funcionario(full_name="Carla Díaz", status="Inactivo")
        session.add_all([op1, op2, op_fechada, ana, beto, carla])
        session.commit()

        return SimpleNamespace(
            corte=corte.id,
            confeccion=confeccion.id,
            modulo_1=modulo_1.id,
            modulo_2=modulo_2.id,
            mesa=mesa.id,
            polo=polo.id,
            op1=op1.id,
            op2=op2.id,
            op_fechada=op_fechada.id,
            ana=ana.id,
            beto=beto.id,
            carla=carla.id,
        )
    finally:
        session.close()
