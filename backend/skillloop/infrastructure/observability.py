"""Structured Logging — JSON log lines tagged with the acting wallet.

Invariants:
    - Every line carries timestamp, level, logger and message
    - The wallet bound for the current request is attached to every line logged while it runs,
      unless the call site passed its own `wallet` extra
    - Escrow identifiers (session_id, bid_id, request_id, certificate_id, amount) surface as
      top-level keys so a session's money trail can be filtered in one query
    - setup_logging is idempotent: re-running it replaces its own handler, never stacks

Design Decisions:
    - ContextVar over passing the actor through every service call: asyncio copies the
      context per task, so concurrent requests never see each other's wallet
    - The bind happens in the identity dependency (api/dependencies.get_actor); anonymous
      reads log without a wallet
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone

_current_wallet: ContextVar[str | None] = ContextVar("current_wallet", default=None)

_LEDGER_FIELDS = (
    "wallet", "session_id", "request_id", "bid_id", "certificate_id", "amount",
    "error_code", "attempt", "path",
)

_HANDLER_NAME = "skillloop"


def bind_wallet(address: str | None) -> None:
    """Tag log lines emitted for the rest of this request with `address`."""
    _current_wallet.set(address)


class WalletContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "wallet", None) is None:
            record.wallet = _current_wallet.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _LEDGER_FIELDS:
            value = getattr(record, key, None)
            if value is None:
                continue
            line[key] = value if isinstance(value, (int, float, bool)) else str(value)
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local development."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        wallet = getattr(record, "wallet", None)
        return f"{text} [wallet={wallet}]" if wallet else text


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.addFilter(WalletContextFilter())
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # engine chatter drowns the escrow trail at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
