from __future__ import annotations

import importlib
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, request

from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .core.logging import configure_logging
from .database.bootstrap import apply_schema, list_tables

logger = logging.getLogger("request")

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "database" / "schema.sql"


def load_settings():
    load_dotenv(override=False)
    return importlib.import_module(get_settings_module())


def _register_request_logging(app: Flask) -> None:
    @app.before_request
    def _start_timer():
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        latency_ms = (time.perf_counter() - g.get("request_started", time.perf_counter())) * 1000
        logger.info(
            "request",
            extra={
                "request_id": g.get("request_id"),
                "path": request.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
            },
        )
        response.headers["X-Request-Id"] = g.get("request_id", "")
        return response


def create_app(*, container: Optional[Container] = None) -> Flask:
    settings = load_settings()
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app = Flask(__name__)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["CRON_SECRET"] = getattr(settings, "CRON_SECRET", "")

    if container is None:
        container = build_container(settings)
        if container.conn is not None and getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(container.conn, schema_path=SCHEMA_PATH)
            logging.getLogger(__name__).info("schema ready (tables=%s)", len(list_tables(container.conn)))

    app.extensions["timeclock"] = container

    _register_request_logging(app)
    register_attendance(app, container)

    return app
