import logging
import sys
from typing import Optional

from .config import LOG_LEVEL


class NamespaceFilter(logging.Filter):
    def __init__(self, allowed_namespaces=None):
        super().__init__()
        self.allowed_namespaces = allowed_namespaces if allowed_namespaces is not None else []

    def filter(self, record):
        if not self.allowed_namespaces:
            return True  # If no namespaces are specified, allow all records
        # Allow record if its name starts with any of the allowed namespaces
        return any(record.name.startswith(ns) for ns in self.allowed_namespaces)


log_formatter = logging.Formatter(
    fmt="%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

APP_LOGGER_NAME = "backoffice"

# Per-namespace overrides. Child loggers created with logging.getLogger(__name__)
# (e.g. "backoffice.features.reports.engine") inherit from the closest entry.
NAMESPACE_LEVELS: dict[str, int] = {
    "backoffice.features.reports": logging.DEBUG,
}


def setup_logging(
    level: str = LOG_LEVEL,
    allowed_namespaces: Optional[list[str]] = None,
) -> logging.Logger:
    """Configure the application logger tree.

    Safe to call more than once: the console handler is only attached the first
    time, later calls just adjust levels and filters.
    """
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(level)

    console_handler = next(
        (h for h in app_logger.handlers if getattr(h, "_backoffice_console", False)),
        None,
    )
    if console_handler is None:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(log_formatter)
        console_handler._backoffice_console = True
        app_logger.addHandler(console_handler)

    for existing in list(console_handler.filters):
        if isinstance(existing, NamespaceFilter):
            console_handler.removeFilter(existing)
    if allowed_namespaces:
        console_handler.addFilter(NamespaceFilter(allowed_namespaces))

    for namespace, namespace_level in NAMESPACE_LEVELS.items():
        logging.getLogger(namespace).setLevel(namespace_level)

    # Quieter ORM logs unless explicitly debugging SQL:
    # logging.getLogger("tortoise.db_client").setLevel(logging.DEBUG)
    return app_logger
