import logging
import logging.config
from pathlib import Path
from pythonjsonlogger import jsonlogger
from datetime import datetime

# Un único logger de paquete cubre agrisys.api, .bus, .core, .simulator...
PACKAGE_LOGGER = "agrisys"

class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.now().isoformat()
        log_record['level'] = record.levelname
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        # Los callbacks MQTT llegan desde el hilo de red de paho
        log_record['thread'] = record.threadName

def setup_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    json_format: bool = True,
    third_party_level: str = "WARNING"
) -> Path:
    """Configura el sistema de logging y devuelve la ruta del archivo de log.

    Los loggers `agrisys.*` escriben con `level`; las librerías (paho, asyncio,
    uvicorn...) solo a partir de `third_party_level`.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Nombre del archivo de log basado en la fecha
    timestamp = datetime.now().strftime("%Y%m%d")
    log_file = log_dir / f"agrisys_{timestamp}.log"
    formatter = 'json' if json_format else 'standard'
    handlers = ['console', 'file']

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {
                '()': CustomJsonFormatter,
                'format': '%(timestamp)s %(level)s %(name)s %(message)s'
            },
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': formatter
            },
            'file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': str(log_file),
                'formatter': formatter,
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }
        },
        'root': {
            'handlers': handlers,
            'level': third_party_level
        },
        'loggers': {
            PACKAGE_LOGGER: {
                'handlers': handlers,
                'level': level,
                'propagate': False
            }
        }
    }

    logging.config.dictConfig(config)
    return log_file
