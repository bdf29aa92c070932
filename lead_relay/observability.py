from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from threading import Lock
from typing import Any


logger = logging.getLogger("lead_relay")

_metrics_lock = Lock()
_metrics_counter: Counter[str] = Counter()
_HANDLER_MARKER = "_lead_relay_handler"
_REDACTED = "***"
_SECRET_KEYS = {"password", "authorization", "authenticationguid", "authentication_guid"}


def _normalize(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {
            str(k): _REDACTED if str(k).lower() in _SECRET_KEYS else _normalize(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [_normalize(v) for v in value]
    return str(value)


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Attach stream (and optional file) handlers to the service logger once."""
    logger.setLevel(level.upper())
    if any(getattr(h, _HANDLER_MARKER, False) for h in logger.handlers):
        return

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)


def incr_metric(name: str, value: int = 1, **labels: Any) -> None:
    """Bump an in-process counter keyed as `name|label=value,...`."""
    key = name
    if labels:
        key += "|" + ",".join(f"{k}={_normalize(labels[k])}" for k in sorted(labels))
    with _metrics_lock:
        _metrics_counter[key] += value


def metrics_snapshot() -> dict[str, int]:
    with _metrics_lock:
        return dict(_metrics_counter)


def reset_metrics() -> None:
    with _metrics_lock:
        _metrics_counter.clear()


def log_event(
    event: str,
    *,
    level: int = logging.INFO,
    request_id: str | None = None,
    **fields: Any,
) -> None:
    """Emit one JSON line; secret-named fields are masked at any depth."""
    record = _normalize(fields)
    record["event"] = event
    if request_id:
        record["request_id"] = request_id
    logger.log(level, json.dumps(record, sort_keys=True))
