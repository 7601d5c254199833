import logging

from marketplace.core.config import settings
from marketplace.core.request_context import request_id_ctx_var

HANDLER_NAME = "marketplace"
LOG_FORMAT = "%(asctime)s %(levelname)s request_id=%(request_id)s %(name)s %(message)s"

# Libraries that log every SSE ping or hash round at INFO/DEBUG.
NOISY_LOGGERS = ("sse_starlette.sse", "passlib", "multipart")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        return True


def setup_logging(level: str | None = None) -> None:
    """Attach the request-aware stream handler to the root logger once."""
    root_logger = logging.getLogger()
    root_logger.setLevel((level or settings.log_level).upper())
    if any(handler.get_name() == HANDLER_NAME for handler in root_logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
