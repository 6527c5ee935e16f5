# cart_service/utils/logging.py
import logging
import sys

from cart_service.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def configure_logging(level: str = LOG_LEVEL) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger("cart_service")
    root.setLevel(level.upper())
    root.addHandler(handler)
    root.propagate = False

    #kafka-python jest bardzo gadatliwy na INFO
    logging.getLogger("kafka").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
