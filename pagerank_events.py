import json
from datetime import datetime, timezone

_enabled = False


def enable() -> None:
    global _enabled
    _enabled = True


def disable() -> None:
    global _enabled
    _enabled = False


def is_enabled() -> bool:
    return _enabled


def log_event(event_type: str, **fields):
    if not _enabled:
        return
    payload = {
        "event_type": event_type,
        "ts": datetime.now(timezone.utc).isoformat(),
        **fields,
    }
    print(json.dumps(payload))
