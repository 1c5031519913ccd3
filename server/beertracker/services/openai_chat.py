from __future__ import annotations

import math
from dataclasses import dataclass
from typing import cast
from urllib.parse import urlparse

import httpx

from beertracker.core.config import Settings
from beertracker.services.errors import CollaboratorUnavailable


_MIN_TIMEOUT_SECONDS = 1.0
_MAX_TIMEOUT_SECONDS = 120.0


@dataclass(frozen=True)
class OpenAIChatConfig:
    base_url: str
    api_key: str
    model: str


def normalize_openai_base_url(raw: str) -> str:
    u = raw.strip()
    if u == "":
        raise ValueError("OPENAI_BASE_URL cannot be empty")
    p = urlparse(u)
    if not p.scheme or not p.netloc:
        raise ValueError("OPENAI_BASE_URL must be a full URL")
    u = u.rstrip("/")
    if not u.endswith("/v1"):
        u = u + "/v1"
    return u


def clamp_timeout_seconds(raw: float | int | str | None, *, default: float) -> float:
    try:
        t = float(raw) if raw is not None else default
    except Exception:
        t = default
    if not math.isfinite(t) or t <= 0:
        t = default
    return float(max(_MIN_TIMEOUT_SECONDS, min(_MAX_TIMEOUT_SECONDS, t)))


def openai_config_from_settings(s: Settings) -> OpenAIChatConfig:
    if not s.openai_base_url or not s.openai_api_key:
        raise ValueError("OPENAI_BASE_URL and OPENAI_API_KEY are required when OPENAI_MODE=openai")
    return OpenAIChatConfig(
        base_url=normalize_openai_base_url(s.openai_base_url),
        api_key=s.openai_api_key.strip(),
        model=s.openai_model.strip() or "gpt-4o-mini",
    )


def _extract_message_content(obj: object) -> str:
    if not isinstance(obj, dict):
        raise ValueError("unexpected chat completion response shape")
    choices = cast(dict[str, object], obj).get("choices")
    if not isinstance(choices, list) or not choices:
        raise ValueError("chat completion response missing choices")
    first = cast(object, choices[0])
    if not isinstance(first, dict):
        raise ValueError("chat completion choice invalid")
    message = cast(dict[str, object], first).get("message")
    if not isinstance(message, dict):
        raise ValueError("chat completion choice missing message")
    content = cast(dict[str, object], message).get("content")
    if not isinstance(content, str):
        raise ValueError("chat completion message missing content")
    return content


async def chat_completion(
    cfg: OpenAIChatConfig,
    *,
    messages: list[dict[str, object]],
    timeout_s: float,
    max_tokens: int,
    temperature: float,
    json_object: bool = False,
) -> str:
    """POST one non-streaming chat completion and return the first message text.

    Transport errors, non-2xx answers and malformed bodies all surface as
    ``CollaboratorUnavailable``.
    """
    timeout = httpx.Timeout(timeout_s, connect=min(10.0, timeout_s))
    headers = {"Authorization": f"Bearer {cfg.api_key}", "Content-Type": "application/json"}
    payload: dict[str, object] = {
        "model": cfg.model,
        "messages": messages,
        "max_tokens": int(max_tokens),
        "temperature": float(temperature),
    }
    if json_object:
        payload["response_format"] = {"type": "json_object"}

    try:
        async with httpx.AsyncClient(base_url=cfg.base_url, timeout=timeout, trust_env=False) as client:
            resp = await client.post("chat/completions", headers=headers, json=payload)
            _ = resp.raise_for_status()
            obj = cast(object, resp.json())
        return _extract_message_content(obj)
    except httpx.HTTPError as exc:
        raise CollaboratorUnavailable(f"http_error:{type(exc).__name__}") from exc
    except ValueError as exc:
        raise CollaboratorUnavailable("bad_response") from exc
