# log.py
import logging

from delivery_service.config import LOG_LEVEL, SERVICE_NAME

FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def get_logger(component: str = "") -> logging.Logger:
    """
    Return a `delivery-service.<component>` logger with the shared stream handler.
    Handlers are attached once per logger name.
    """
    name = f"{SERVICE_NAME}.{component}" if component else SERVICE_NAME
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(handler)
    return logger
