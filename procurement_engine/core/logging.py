from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union

# Who and which request/run a log line belongs to. The HTTP middleware and the
# sweep CLI bind these; get_current_actor fills in the actor once authenticated.
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | actor=%(actor_id)s | %(message)s"


class ProcurementContextFilter(logging.Filter):
    """Stamp correlation_id and actor_id on every record ("-" when unbound)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.actor_id = actor_id_var.get() or "-"
        return True


@contextmanager
def log_context(*, correlation_id: Optional[str], actor_id: Optional[str] = None) -> Iterator[None]:
    """Bind correlation and actor ids for the duration of a request or sweep run."""
    corr_token = correlation_id_var.set(correlation_id)
    actor_token = actor_id_var.set(actor_id)
    try:
        yield
    finally:
        correlation_id_var.reset(corr_token)
        actor_id_var.reset(actor_token)


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Route all logging to stdout in the pipe-delimited procurement format.

    Safe to call more than once: the handler installed by a previous call is
    replaced rather than duplicated.
    """
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(ProcurementContextFilter())
    handler.set_name("procurement")

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    # SQL statements are echoed through SQL_ECHO, not the application log level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
