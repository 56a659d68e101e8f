"""
JSON log formatting for the checkout service.
"""
import json
import logging
import os

DEFAULT_LOG_LEVEL = "INFO"


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, tag, level, message and exception if any."""

    def format(self, record):
        log_entry = {
            'timestamp': self.formatTime(record, self.datefmt),
            'tag': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(level=None):
    level = (level or os.getenv("CHECKOUT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()

    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler.formatter, JSONFormatter):
            root.setLevel(level)
            return handler

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    return handler
