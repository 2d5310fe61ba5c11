# controle_piso/db_core.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from controle_piso import configuracoes


def Conectar_DB(DB_NAME: str | None = None):
    if configuracoes.DATABASE_URL:
        return create_engine(configuracoes.DATABASE_URL)
    DB_NAME = DB_NAME or configuracoes.DB_NAME
    return create_engine(
        f"postgresql://{configuracoes.DB_USER}:{configuracoes.DB_PASSWORD}"
        f"@{configuracoes.DB_HOST}:{configuracoes.DB_PORT}/{DB_NAME}"
    )


def criar_sessionmaker(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
