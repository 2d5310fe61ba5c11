import json
from datetime import datetime

from controle_piso.feed import FeedMudancas, Mudanca, INSERT, UPDATE
from controle_piso.mqtt_handlers import (
    ORIGEM_MQTT,
    configurar_mqtt_handlers,
    mensagem_para_mudanca,
    mudanca_para_mensagem,
)

TOPICO = "erp/mudancas"


class MqttFalso:
    def __init__(self):
        self.publicados = []
        self.assinados = []
        self.handlers = {}

    def on_connect(self):
        def deco(fn):
            self.handlers["connect"] = fn
            return fn
        return deco

    def on_message(self):
        def deco(fn):
            self.handlers["message"] = fn
            return fn
        return deco

    def publish(self, topic, payload):
        self.publicados.append((topic, payload))

    def subscribe(self, topic):
        self.assinados.append(topic)


class Mensagem:
    def __init__(self, topic, payload):
        self.topic = topic
        self.payload = payload


def test_mensagem_publicada_serializa_datas():
    mudanca = Mudanca("production_logs", INSERT, {"id": 3, "log_time": datetime(2024, 3, 4, 8, 30)})
    topic, payload = mudanca_para_mensagem(mudanca, TOPICO, "inst-a")

    assert topic == "erp/mudancas/production_logs"
    dados = json.loads(payload)
    assert dados == {"evento": "INSERT", "linha": {"id": 3, "log_time": "2024-03-04T08:30:00"}, "instancia": "inst-a"}


def test_mensagem_de_outra_instancia_vira_mudanca():
    payload = json.dumps({"evento": "update", "linha": {"id": 1}, "instancia": "inst-b"}).encode()
    mudanca = mensagem_para_mudanca("erp/mudancas/production_timers", payload, TOPICO, "inst-a")
    assert mudanca == Mudanca("production_timers", UPDATE, {"id": 1}, origem=ORIGEM_MQTT)


def test_mensagens_ignoradas():
    eco = json.dumps({"evento": "INSERT", "instancia": "inst-a"})
    assert mensagem_para_mudanca("erp/mudancas/production_logs", eco, TOPICO, "inst-a") is None
    assert mensagem_para_mudanca("outro/topico", "{}", TOPICO, "inst-a") is None
    assert mensagem_para_mudanca("erp/mudancas/a/b", "{}", TOPICO, "inst-a") is None
    assert mensagem_para_mudanca("erp/mudancas/production_logs", b"nao-json", TOPICO, "inst-a") is None
    assert mensagem_para_mudanca("erp/mudancas/production_logs", '{"evento": "TRUNCATE"}', TOPICO, "inst-a") is None


def test_ponte_publica_mudancas_locais_e_nao_reenvia_remotas():
    feed = FeedMudancas()
    mqtt = MqttFalso()
    configurar_mqtt_handlers(mqtt, feed, TOPICO, "inst-a")

    feed.publicar(Mudanca("production_logs", INSERT, {"id": 1}))
    feed.publicar(Mudanca("production_logs", INSERT, {"id": 2}, origem=ORIGEM_MQTT))

    assert [t for t, _ in mqtt.publicados] == ["erp/mudancas/production_logs"]
    assert json.loads(mqtt.publicados[0][1])["linha"] == {"id": 1}


def test_ponte_entrega_mensagens_recebidas_ao_feed():
    feed = FeedMudancas()
    mqtt = MqttFalso()
    configurar_mqtt_handlers(mqtt, feed, TOPICO, "inst-a")
    recebidas = []
    feed.assinar(["production_timer_employees"], recebidas.append)

    mqtt.handlers["connect"](None, None, None, 0)
    assert mqtt.assinados == ["erp/mudancas/#"]

    payload = json.dumps({"evento": "DELETE", "linha": {"timer_id": 4}, "instancia": "inst-b"}).encode()
    mqtt.handlers["message"](None, None, Mensagem("erp/mudancas/production_timer_employees", payload))

    assert len(recebidas) == 1
    assert recebidas[0].origem == ORIGEM_MQTT
    assert mqtt.publicados == []
