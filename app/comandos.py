# app/comandos.py
import inspect

from controle_piso.erros import FalhaEscrita

# cmd -> (método do repositório, mensagem de sucesso)
COMANDOS = {
    "iniciar": ("iniciar_timer", "Produção iniciada."),
    "pausar": ("pausar_timer", "Produção pausada."),
    "retomar": ("retomar_timer", "Produção retomada."),
    "finalizar": ("finalizar_timer", "Produção finalizada."),
    "avanco": ("registrar_avanco", "Avanço registrado."),
    "adicionar_membro": ("adicionar_membro", "Operário adicionado à equipe."),
    "remover_membro": ("remover_membro", "Operário removido da equipe."),
    "nao_conformidade": ("reportar_nao_conformidade", "Não conformidade registrada."),
    "excluir": ("excluir_timer", "Registro de produção eliminado."),
}


def executar_comando(repositorio, cmd, args=None):
    """
    Executa a ação do card do posto. Escrita única no banco; o resultado volta
    para a tela pelo feed de mudanças, não por aqui.
    Levanta FalhaEscrita se o comando for inválido ou a escrita falhar.
    """
    if cmd not in COMANDOS:
        raise FalhaEscrita(f"Comando desconhecido: {cmd}")
    metodo, mensagem = COMANDOS[cmd]
    funcao = getattr(repositorio, metodo)
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise FalhaEscrita(f"Parâmetros inválidos para {cmd}.")
    try:
        inspect.signature(funcao).bind(**args)
    except TypeError as e:
        raise FalhaEscrita(f"Parâmetros inválidos para {cmd}.") from e
    resultado = funcao(**args)
    return {"cmd": cmd, "mensagem": mensagem, "resultado": resultado}
