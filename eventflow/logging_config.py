"""
Logging setup for the Flask app.

- readable: one line per record, for development and tests
- json: one JSON object per record, for log aggregation
"""

import json
import logging
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for key in ("program_id", "actor_id", "from_stage", "to_stage"):
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s", "%H:%M:%S")


def configure_logging(app):
    level_name = app.config.get("LOG_LEVEL", "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)
    formatter = JSONFormatter() if app.config.get("LOG_FORMAT") == "json" else ReadableFormatter()

    pkg_logger = logging.getLogger("eventflow")
    # Single handler, even when create_app runs more than once
    pkg_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "botocore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
