from __future__ import annotations

import contextvars
import logging
import re
import sys
from typing_extensions import override


request_id_ctx_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    @override
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.request_id = request_id_ctx_var.get()
        return True


_RE_BEARER = re.compile(
    r"(?i)(authorization\s*[:=]\s*bearer\s+)([a-z0-9._~+/=-]+)",
)
_RE_COOKIE_SESSION = re.compile(r"(?i)(\bsession=)([^\s;,]+)")

# Only explicit secret-bearing field names; a generic "code" key is left alone.
_SECRET_KEYS = r"password|new_password|newPassword|invite_code|inviteCode|reset_code|token"
_RE_JSON_SECRETS = re.compile(
    rf'("(?:{_SECRET_KEYS})"\s*:\s*")([^"]+)(")',
)
_RE_PY_SECRETS = re.compile(
    rf"('(?:{_SECRET_KEYS})'\s*:\s*')([^']+)(')",
)
_RE_KV_SECRETS = re.compile(
    rf"\b({_SECRET_KEYS})\b\s*=\s*([^\s,;]+)",
)

_RE_PHOTO_JSON = re.compile(r'("photo"\s*:\s*")([^"]+)(")', re.IGNORECASE)
_RE_DATA_URL = re.compile(
    r"(?i)(data:image\/[a-z0-9.+-]+;base64,)([a-z0-9+/=]+)",
)
_RE_LONG_B64 = re.compile(r"(?<![a-f0-9])[A-Za-z0-9+/]{120,}={0,2}")


def _redact_value(raw: str) -> str:
    return f"[REDACTED len={len(raw)}]"


class RedactingFormatter(logging.Formatter):
    @override
    def format(self, record: logging.LogRecord) -> str:
        out = super().format(record)

        out = _RE_BEARER.sub(r"\1[REDACTED]", out)
        out = _RE_COOKIE_SESSION.sub(lambda m: f"{m.group(1)}{_redact_value(m.group(2))}", out)

        out = _RE_JSON_SECRETS.sub(
            lambda m: f"{m.group(1)}{_redact_value(m.group(2))}{m.group(3)}", out
        )
        out = _RE_PY_SECRETS.sub(
            lambda m: f"{m.group(1)}{_redact_value(m.group(2))}{m.group(3)}", out
        )
        out = _RE_KV_SECRETS.sub(lambda m: f"{m.group(1)}={_redact_value(m.group(2))}", out)

        out = _RE_PHOTO_JSON.sub(
            lambda m: f"{m.group(1)}{_redact_value(m.group(2))}{m.group(3)}", out
        )
        out = _RE_DATA_URL.sub(lambda m: f"{m.group(1)}{_redact_value(m.group(2))}", out)
        out = _RE_LONG_B64.sub("[REDACTED_B64]", out)

        return out


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        RedactingFormatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] [rid=%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Avoid duplicate handlers when app reloads in dev.
    root.handlers = [handler]
