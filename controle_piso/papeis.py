# controle_piso/papeis.py
from dataclasses import dataclass
from enum import Enum


class Papel(Enum):
    SUPER_ADMINISTRADOR = "SuperAdministrador"
    ADMINISTRADOR = "Administrador"
    USUARIO = "Usuario"
    JEFE_PRODUCCION = "Jefe de Produccion"
    GERENCIA = "Gerencia"

    @classmethod
    def de_texto(cls, valor):
        """Converte o texto gravado no perfil. Papel desconhecido -> None."""
        if isinstance(valor, cls):
            return valor
        for papel in cls:
            if papel.value == str(valor or "").strip():
                return papel
        return None


class Painel(Enum):
    GERAL = "geral"
    CHEFE_PRODUCAO = "chefe_producao"
    GERENCIA = "gerencia"


@dataclass(frozen=True)
class ModuloSistema:
    id: str
    nome: str
    papeis: frozenset


_PADRAO = frozenset({Papel.SUPER_ADMINISTRADOR, Papel.ADMINISTRADOR, Papel.USUARIO})
_PRODUCAO = _PADRAO | {Papel.JEFE_PRODUCCION}
_TODOS = frozenset(Papel)

MODULOS = (
    ModuloSistema("dashboard", "Dashboard", _TODOS),
    ModuloSistema("planning", "Planeación", _PRODUCAO),
    ModuloSistema("engineering", "Ingeniería", _PRODUCAO),
    ModuloSistema("programming", "Programación", _PRODUCAO),
    ModuloSistema("inventory", "Inventarios", _PADRAO),
    ModuloSistema("shop_floor_control", "Control de Piso", _PRODUCAO),
    ModuloSistema("costs", "Costos", _PADRAO | {Papel.GERENCIA}),
    ModuloSistema("personnel", "Personal", _PADRAO),
    ModuloSistema("users", "Usuarios", _PADRAO),
)

_MODULOS_POR_ID = {m.id: m for m in MODULOS}


def modulos_visiveis(papel):
    papel = Papel.de_texto(papel)
    if papel is None:
        return []
    return [m for m in MODULOS if papel in m.papeis]


def pode_acessar(papel, modulo_id: str) -> bool:
    papel = Papel.de_texto(papel)
    modulo = _MODULOS_POR_ID.get(modulo_id)
    return papel is not None and modulo is not None and papel in modulo.papeis


def painel_para_papel(papel) -> Painel:
    papel = Papel.de_texto(papel)
    if papel is Papel.JEFE_PRODUCCION:
        return Painel.CHEFE_PRODUCAO
    if papel is Papel.GERENCIA:
        return Painel.GERENCIA
    return Painel.GERAL
