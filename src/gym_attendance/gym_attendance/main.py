from __future__ import annotations

import atexit
import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .database.connection import ensure_sqlite_parent
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"), getattr(settings, "LOG_FILE", None))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        ensure_sqlite_parent(db_config["url"])
        container = build_container(db_config=db_config, sync_config=getattr(settings, "SYNC_CONFIG"))
        logger.info("Using settings %s, ledger %s", settings_module, db_config["url"])

    container.start()
    atexit.register(container.shutdown)
    app.extensions["attendance_container"] = container

    register_attendance(app, container)

    return app
