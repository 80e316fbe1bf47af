from datetime import datetime, timezone
from typing import Dict

from notify_hub.schemas import StreamEvent


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat()

# Server -> client messages are built as dicts
def make_ack(delivered: int, status: str = "ok"):
    return {"status": status, "delivered": delivered, "ts": now_ts()}

def make_error(code: str, message: str):
    return {"type": "error", "error": {"code": code, "message": message}, "ts": now_ts()}

def make_sse(event: StreamEvent) -> Dict[str, str]:
    """
    SSE fields for one event record; the id is the per-connection sequence in
    decimal. The SSE framing splits data on CR, LF and CRLF, so a client
    re-joins a multi-line payload with LF.
    """
    fields = {"id": str(event.sequence), "data": event.payload}
    if event.kind != "message":
        fields["event"] = event.kind
    return fields
