import pytest

from controle_piso.papeis import Papel, Painel, modulos_visiveis, pode_acessar, painel_para_papel


def _ids(papel):
    return [m.id for m in modulos_visiveis(papel)]


def test_papel_de_texto():
    assert Papel.de_texto("Jefe de Produccion") is Papel.JEFE_PRODUCCION
    assert Papel.de_texto(" Gerencia ") is Papel.GERENCIA
    assert Papel.de_texto(Papel.USUARIO) is Papel.USUARIO
    assert Papel.de_texto("administrador") is None
    assert Papel.de_texto(None) is None


@pytest.mark.parametrize("papel", ["SuperAdministrador", "Administrador", "Usuario"])
def test_papeis_padrao_veem_todos_os_modulos(papel):
    assert len(_ids(papel)) == 9


def test_chefe_de_producao():
    ids = _ids("Jefe de Produccion")
    assert "shop_floor_control" in ids
    assert "planning" in ids
    assert "costs" not in ids
    assert "users" not in ids


def test_gerencia():
    assert _ids("Gerencia") == ["dashboard", "costs"]
    assert not pode_acessar("Gerencia", "shop_floor_control")


def test_papel_ou_modulo_desconhecido():
    assert modulos_visiveis("Visitante") == []
    assert not pode_acessar("Visitante", "dashboard")
    assert not pode_acessar("Administrador", "nao_existe")


def test_painel_por_papel():
    assert painel_para_papel("Jefe de Produccion") is Painel.CHEFE_PRODUCAO
    assert painel_para_papel("Gerencia") is Painel.GERENCIA
    assert painel_para_papel("Usuario") is Painel.GERAL
    assert painel_para_papel("Visitante") is Painel.GERAL
