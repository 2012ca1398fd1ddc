from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set levels for the `helpdesk` package loggers.

    - Under uvicorn the root handlers already exist and are reused.
    - Run any other way (scripts, a REPL), a single stderr handler is installed.
    - Authorization denials log at INFO; `HELPDESK_LOG_LEVEL=DEBUG` also shows
      identity loads and SQL emitted by SQLAlchemy.
    """

    normalized = level.upper()

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)

    package_logger = logging.getLogger("helpdesk")
    package_logger.setLevel(normalized)
    package_logger.propagate = True

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if normalized == "DEBUG" else logging.WARNING)
