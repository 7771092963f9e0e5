"""
Structured logging configuration.

Called once from create_app() and from CLI scripts. LOG_FORMAT selects text
or JSON output; LOG_LEVEL defaults to INFO and can be overridden per call
(scripts pass --verbose).

Health and import code attaches the record it is working on through
`extra=` (workflow_id, channel, period_type, period_start_date, batch_id).
The JSON formatter lifts those onto the top-level entry so aggregators can
filter one workflow's recompute history.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys accepted via logger.xxx(..., extra={...})
CONTEXT_FIELDS = (
    'workflow_id',
    'channel',
    'period_type',
    'period_start_date',
    'metric_name',
    'batch_id',
)


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = str(value)
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'requests',
    'sqlalchemy.engine',
    'werkzeug',
    'alembic',
]


def configure_logging(app=None, level=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables:
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"

    An explicit `level` (name or int) wins over LOG_LEVEL.
    """
    if level is None:
        level = os.getenv('LOG_LEVEL', 'INFO')
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        # Flask's own logger propagates to root; drop its default handler
        app.logger.handlers.clear()
        app.logger.setLevel(level)
