"""Pipeline-aware logging.

Every record carries the id and current step of the enhancement run that emitted it,
and anything passed through ``extra=`` is rendered as trailing ``key=value`` pairs so
log lines stay greppable without a JSON sink.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator

from rich.logging import RichHandler

NO_RUN = "-"

# Libraries that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai._base_client", "asyncio")

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "run_id",
    "step",
}


@dataclass(frozen=True)
class _RunState:
    run_id: str = NO_RUN
    step: str = NO_RUN


_state: contextvars.ContextVar[_RunState] = contextvars.ContextVar("webcontext_run", default=_RunState())


class _RunFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        state = _state.get()
        record.run_id = state.run_id
        record.step = state.step
        return True


class StructuredFormatter(logging.Formatter):
    """Append a record's ``extra`` fields to the message as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__("run=%(run_id)s step=%(step)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        for attr in ("run_id", "step"):
            if not hasattr(record, attr):
                setattr(record, attr, NO_RUN)
        line = super().format(record)
        extras = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS and not k.startswith("_")}
        if not extras:
            return line
        return line + " | " + " ".join(f"{k}={v!r}" if isinstance(v, str) else f"{k}={v}" for k, v in extras.items())


@contextlib.contextmanager
def run_context(*, run_id: str, step: str | None = None) -> Iterator[None]:
    """Bind a run id (and optionally a step) for the enclosed block.

    The binding is task-local; concurrent runs each log and report their own id.
    """

    token = _state.set(_RunState(run_id=run_id, step=step or _state.get().step))
    try:
        yield
    finally:
        _state.reset(token)


def set_step(step: str) -> None:
    _state.set(replace(_state.get(), step=step))


def current_run_id() -> str:
    """Id of the run bound to this context, ``"-"`` outside any run."""

    return _state.get().run_id


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through a single rich handler.

    Calling this again only updates the level and reuses the installed handler.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_webcontext", False) for h in root.handlers):
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True, show_path=False)
        handler._webcontext = True  # type: ignore[attr-defined]
        handler.addFilter(_RunFilter())
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log the active exception with its traceback; ``context`` goes out as extra fields."""

    logger.exception(msg, extra=context or None)
