# controle_piso/mqtt_handlers.py
import json
import logging
from datetime import date, datetime

from controle_piso.feed import Mudanca, INSERT, UPDATE, DELETE

logger = logging.getLogger(__name__)

ORIGEM_MQTT = "mqtt"
_EVENTOS = {INSERT, UPDATE, DELETE}


def _serializa(valor):
    if isinstance(valor, (datetime, date)):
        return valor.isoformat()
    return str(valor)


def mudanca_para_mensagem(mudanca: Mudanca, topico_base: str, instancia: str):
    """(topic, payload) publicado para as outras instâncias."""
    topic = f"{topico_base}/{mudanca.tabela}"
    payload = json.dumps(
        {"evento": mudanca.evento, "linha": mudanca.linha, "instancia": instancia},
        default=_serializa,
    )
    return topic, payload


def mensagem_para_mudanca(topic: str, payload, topico_base: str, instancia: str):
    """
    Converte mensagem MQTT em Mudanca.
    Retorna None se não for do feed, se for eco desta instância ou se estiver malformada.
    """
    prefixo = f"{topico_base}/"
    if not topic or not topic.startswith(prefixo):
        return None
    tabela = topic[len(prefixo):]
    if not tabela or "/" in tabela:
        return None

    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode(errors="ignore")
    try:
        dados = json.loads(payload or "{}")
    except ValueError:
        logger.warning("[MQTT] Payload inválido em %s", topic)
        return None
    if not isinstance(dados, dict):
        return None
    if dados.get("instancia") == instancia:
        return None

    evento = str(dados.get("evento") or UPDATE).upper()
    if evento not in _EVENTOS:
        return None
    linha = dados.get("linha") if isinstance(dados.get("linha"), dict) else {}
    return Mudanca(tabela, evento, linha, origem=ORIGEM_MQTT)


def configurar_mqtt_handlers(mqtt, feed, topico_base: str, instancia: str):
    """
    Ponte do feed entre instâncias:
    - mudanças locais (commit nesta instância) -> publish no broker
    - mensagens de outras instâncias -> feed local
    """

    def repassa_local(mudanca):
        if mudanca.origem is not None:
            return
        topic, payload = mudanca_para_mensagem(mudanca, topico_base, instancia)
        mqtt.publish(topic, payload)

    assinatura = feed.assinar(None, repassa_local)

    @mqtt.on_connect()
    def handle_connect(client, userdata, flags, rc):
        logger.info("[MQTT] Conectado ao broker. Assinando %s/#", topico_base)
        mqtt.subscribe(f"{topico_base}/#")

    @mqtt.on_message()
    def handle_mqtt_message(client, userdata, message):
        try:
            mudanca = mensagem_para_mudanca(message.topic, message.payload, topico_base, instancia)
        except Exception as e:
            logger.error("[MQTT] Erro tratando mensagem %s: %s", getattr(message, "topic", "?"), e)
            return
        if mudanca is not None:
            feed.publicar(mudanca)

    return assinatura
