from __future__ import annotations

from typing import Protocol

from beertracker.core.config import Settings
from beertracker.services.openai_chat import (
    OpenAIChatConfig,
    chat_completion,
    clamp_timeout_seconds,
    openai_config_from_settings,
)


_MAX_ROAST_CHARS = 280

_SYSTEM_PROMPT = (
    "You are a cheeky bartender commenting on a friendly group challenge to drink "
    "a very large number of beers together. Write one short playful line (max 2 sentences) "
    "about the drinker's latest beer. Never be mean about appearance, never encourage "
    "drunk driving."
)


class RoastWriter(Protocol):
    """Writes a short decorative line after a drink. Failures raise ``CollaboratorUnavailable``."""

    async def write(self, *, display_name: str, label: str, count: int, remaining: int) -> str: ...


class FakeRoastWriter:
    async def write(self, *, display_name: str, label: str, count: int, remaining: int) -> str:
        return (
            f"{display_name} just sank {label} number {count}. "
            f"Only {remaining} to go for the rest of you."
        )


class OpenAIRoastWriter:
    def __init__(self, cfg: OpenAIChatConfig, *, timeout_s: float):
        self._cfg: OpenAIChatConfig = cfg
        self._timeout_s: float = clamp_timeout_seconds(timeout_s, default=10.0)

    async def write(self, *, display_name: str, label: str, count: int, remaining: int) -> str:
        prompt = (
            f"Drinker: {display_name}\n"
            f"Drink: {label}\n"
            f"Their total so far: {count}\n"
            f"Beers left until the group goal: {remaining}"
        )
        content = await chat_completion(
            self._cfg,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            timeout_s=self._timeout_s,
            max_tokens=120,
            temperature=0.9,
        )
        return content.strip()[:_MAX_ROAST_CHARS]


def build_roast_writer(s: Settings) -> RoastWriter | None:
    if not s.flavor_text_enabled:
        return None
    if s.openai_mode == "openai":
        return OpenAIRoastWriter(openai_config_from_settings(s), timeout_s=s.flavor_text_timeout_seconds)
    return FakeRoastWriter()
