from dotenv import load_dotenv
import os

dotenv_path = os.path.join(os.path.dirname(__file__), '..', '.env')
load_dotenv(dotenv_path=dotenv_path)

# Banco (Row Store)
DB_HOST = os.getenv('DB_HOST', 'localhost')
DB_USER = os.getenv('DB_USER', 'postgres')
DB_PASSWORD = os.getenv('DB_PASSWORD', '')
DB_PORT = os.getenv('DB_PORT', '5432')
DB_NAME = os.getenv('DB_NAME', 'erp_textil')
DATABASE_URL = os.getenv('DATABASE_URL')  # sobrescreve os campos acima (ex: sqlite:///dev.db)

# MQTT (ponte do feed de mudanças entre instâncias)
MQTT_BROKER_URL = os.getenv('MQTT_BROKER_URL')
MQTT_BROKER_PORT = int(os.getenv('MQTT_BROKER_PORT', 1883))
MQTT_USERNAME = os.getenv('MQTT_USERNAME')
MQTT_PASSWORD = os.getenv('MQTT_PASSWORD')
MQTT_CLIENT_ID = os.getenv('MQTT_CLIENT_ID')
topico_mudancas = os.getenv('TOPICO_MUDANCAS', 'erp/mudancas')

# Servidor
ip_ext = os.getenv("IP_EXT", "0.0.0.0")
porta_ext = int(os.getenv("PORT_EXT", 7000))
log_level = os.getenv("LOG_LEVEL", "INFO").upper()

# Tabelas que invalidam a visão do chão de fábrica
tabelas_piso = ("production_timers", "production_logs", "production_timer_employees", "non_conformities")

# Tabelas que invalidam a tabela de produção
tabelas_producao = ("production_timers", "production_logs", "production_orders")
