# controle_piso/erros.py
from dataclasses import dataclass


class ErroControlePiso(Exception):
    """Raiz dos erros do chão de fábrica. Nenhum deles derruba o processo."""


class FalhaBuscaTransitoria(ErroControlePiso):
    """Consulta ou assinatura falhou. Recupera na próxima notificação ou atualização manual."""


class FalhaEscrita(ErroControlePiso):
    """Uma ação do operador (start/pausa/avanço/equipe...) falhou ou foi recusada."""


@dataclass(frozen=True)
class AnomaliaDados:
    """
    Inconsistência referencial entre linhas juntadas.
    Não é levantada: vai para o log, para monitoramento.
    """
    tipo: str        # "timer_duplicado" | "posto_desconhecido"
    posto_id: object
    timer_id: object
    detalhe: str = ""

    def __str__(self):
        texto = f"{self.tipo}: posto={self.posto_id} timer={self.timer_id}"
        return f"{texto} ({self.detalhe})" if self.detalhe else texto
