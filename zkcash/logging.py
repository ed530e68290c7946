"""
zkcash — logging
----------------

Structured logging with:
- JSON lines or a pipe-separated text format
- Context-local fields via `contextvars` (trace_id, program_id, instruction)
- Safe JSON serialization (bytes -> hex, Paths -> str, dataclasses -> dict)
- stdlib only

Usage
-----
    from zkcash import logging as zlog

    zlog.configure(json=False, level="INFO")  # once at process start
    log = zlog.get_logger(__name__)

    with zlog.trace_scope():
        zlog.bind(instruction="withdraw")
        log.info("withdraw accepted", extra={"leaf_index": 3})

Format comes from ZKCASH_LOG_FORMAT=(json|text) when not given explicitly,
level from ZKCASH_LOG_LEVEL via `configure_from_config`. Note secrets are
never passed to the logger; only public values (roots, indices, codes).
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

# ----------------------------
# Context
# ----------------------------

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_LOG_CONTEXT", default={})

DEFAULT_CONTEXT_KEYS = (
    "trace_id",
    "program_id",
    "instruction",
    "component",
)

# LogRecord attributes that are not user extras.
_RECORD_FIELDS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    )
)


def context() -> Dict[str, Any]:
    """Return a *copy* of the active logging context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    """Merge fields into the active context."""
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


def unbind(*keys: str) -> None:
    cur = dict(_LOG_CONTEXT.get())
    for k in keys:
        cur.pop(k, None)
    _LOG_CONTEXT.set(cur)


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None, **fields: Any) -> Iterator[str]:
    """
    Ensure a trace_id (plus any extra fields) for the duration of the scope.
    Restores the prior context on exit.
    """
    prev = dict(_LOG_CONTEXT.get())
    tid = trace_id or short_uuid()
    try:
        bind(trace_id=tid, **fields)
        yield tid
    finally:
        _LOG_CONTEXT.set(prev)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


# ----------------------------
# JSON & Text formatters
# ----------------------------


def _utcnow_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _is_tty(stream: Any) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:  # closed stream
        return False


def _coerce_value(v: Any) -> Any:
    """Make a log field JSON-friendly; bytes become bare hex."""
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    if isinstance(v, Path):
        return str(v)
    if is_dataclass(v) and not isinstance(v, type):
        return asdict(v)
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _coerce_value(v)
        for k, v in record.__dict__.items()
        if not k.startswith("_") and k not in _RECORD_FIELDS
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, then context and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    Pipe-separated one-liner, message last:
      2026-01-05T12:34:56.789+00:00 | WARNING | zkcash.processor | trace_id=ab12 instruction=withdraw | code=UnknownRoot | instruction rejected
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        parts = [_utcnow_iso(), record.levelname, record.name]
        bound = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        fields = [f"{k}={v}" for k, v in _extras(record).items() if k not in ctx]
        if bound:
            parts.append(" ".join(bound))
        if fields:
            parts.append(" ".join(fields))
        parts.append(record.getMessage())
        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ----------------------------
# Public setup API
# ----------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: Union[str, int] = "INFO",
    stream: io.TextIOBase = sys.stderr,
    file_path: Optional[Union[Path, str]] = None,
    propagate_existing: bool = False,
) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    json : bool | None
        If None, determined by env ZKCASH_LOG_FORMAT=(json|text) and TTY detection.
    level : str | int
        Minimum log level.
    stream : TextIO
        Stream for the console handler (default: stderr).
    file_path : Path | str | None
        Optional file that additionally receives JSON logs.
    propagate_existing : bool
        Keep existing root handlers instead of replacing them.
    """
    chosen_json = _decide_json(json, stream)
    lvl = _coerce_level(level)

    root = logging.getLogger()
    root.setLevel(lvl)
    if not propagate_existing:
        for h in list(root.handlers):
            root.removeHandler(h)

    console = logging.StreamHandler(stream)
    console.setLevel(lvl)
    console.setFormatter(JSONFormatter() if chosen_json else TextFormatter())
    root.addHandler(console)

    if file_path:
        p = Path(file_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(p, encoding="utf-8")
        fh.setLevel(lvl)
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)


def configure_from_config(cfg: Any, *, stream: io.TextIOBase = sys.stderr) -> None:
    """Configure logging from a `zkcash.config.PoolConfig`."""
    fmt = (getattr(cfg, "log_format", "") or "").strip().lower()
    json_flag = {"json": True, "text": False}.get(fmt)
    if getattr(cfg, "program_id", None):
        bind(program_id=cfg.program_id)
    configure(json=json_flag, level=getattr(cfg, "log_level", "INFO"), stream=stream)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a standard logger. To add constant per-logger fields, use `with_fields`.
    """
    return logging.getLogger(name or "zkcash")


def with_fields(logger: logging.Logger, **fields: Any) -> "ContextAdapter":
    """Return a logger adapter that injects constant fields on each call."""
    return ContextAdapter(logger, extra={k: _coerce_value(v) for k, v in fields.items()})


class ContextAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges the adapter's constant fields with call-site
    `extra={...}` (call-site wins).
    """

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        extra = kwargs.get("extra") or {}
        kwargs["extra"] = {**(self.extra or {}), **extra} if isinstance(extra, dict) else dict(self.extra or {})
        return msg, kwargs


# ----------------------------
# Internals
# ----------------------------


def _coerce_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(str(level).upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def _decide_json(json_flag: Optional[bool], stream: Any) -> bool:
    if json_flag is not None:
        return json_flag
    env = os.environ.get("ZKCASH_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    # services log JSON, terminals get text
    return not _is_tty(stream)


__all__ = [
    "DEFAULT_CONTEXT_KEYS",
    "context",
    "bind",
    "unbind",
    "clear_context",
    "trace_scope",
    "short_uuid",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "configure_from_config",
    "get_logger",
    "with_fields",
    "ContextAdapter",
]
