import logging
import sys


def configure_logging(level_name: str = "INFO") -> None:
    """Один обработчик stdout на логгере "app"; повторный вызов только меняет уровень."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    app_logger = logging.getLogger("app")
    app_logger.setLevel(level)

    if not any(
        isinstance(handler, logging.StreamHandler) and handler.stream is sys.stdout
        for handler in app_logger.handlers
    ):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        app_logger.addHandler(handler)
