import eventlet
eventlet.monkey_patch()

import logging
import uuid

from flask import Flask
from flask_mqtt import Mqtt
from flask_socketio import SocketIO

from controle_piso import configuracoes
from controle_piso.db_core import Conectar_DB
from controle_piso.feed import FeedMudancas
from controle_piso.models import inicializa_tabelas
from controle_piso.repositorio import RepositorioPiso
from controle_piso.routes import configurar_rotas
from controle_piso.mqtt_handlers import configurar_mqtt_handlers
from app.socketio_gateway import register_socketio_handlers


def create_app():
    logging.basicConfig(
        level=getattr(logging, configuracoes.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ───────────────────────────────────────────────
    # Inicialização do app Flask
    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # Configurações do MQTT
    app.config['MQTT_BROKER_URL'] = configuracoes.MQTT_BROKER_URL
    app.config['MQTT_BROKER_PORT'] = configuracoes.MQTT_BROKER_PORT
    app.config['MQTT_USERNAME'] = configuracoes.MQTT_USERNAME
    app.config['MQTT_PASSWORD'] = configuracoes.MQTT_PASSWORD
    app.config['MQTT_CLIENT_ID'] = configuracoes.MQTT_CLIENT_ID

    # Banco + feed de mudanças
    engine = Conectar_DB()
    inicializa_tabelas(engine)
    repositorio = RepositorioPiso(engine)
    feed = FeedMudancas()
    feed.conectar_sessoes(repositorio.SessionLocal)

    # Inicialização de extensões
    socketio = SocketIO(app, cors_allowed_origins="*")

    # Registro de funcionalidades
    configurar_rotas(app, repositorio)
    register_socketio_handlers(socketio, repositorio, feed)

    if configuracoes.MQTT_BROKER_URL:
        mqtt = Mqtt()
        instancia = configuracoes.MQTT_CLIENT_ID or uuid.uuid4().hex
        configurar_mqtt_handlers(mqtt, feed, configuracoes.topico_mudancas, instancia)
        mqtt.init_app(app)
    else:
        logging.getLogger(__name__).info("[Main] MQTT_BROKER_URL não definido: feed só local.")

    return app, socketio

# ───────────────────────────────────────────────
# Execução da aplicação
if __name__ == '__main__':
    app, socketio = create_app()
    socketio.run(app, host=configuracoes.ip_ext, port=configuracoes.porta_ext)
