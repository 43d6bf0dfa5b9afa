import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from app.config import settings

# set per request by the trace id middleware
TRACE_ID_CTX: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


class TraceIdFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get(None)
        return True


def setup_logging(level: Optional[str] = None):
    """JSON logs on stdout. Ledger code passes bus, date and seats through ``extra``."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s",
        static_fields={"service": settings.APP_NAME},
    ))
    handler.addFilter(TraceIdFilter())
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.handlers = [handler]
    # per-statement SQL logs drown the ledger events
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
