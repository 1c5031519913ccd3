from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from beertracker.core.config import Settings
from beertracker.services.errors import CollaboratorUnavailable
from beertracker.services.openai_chat import (
    OpenAIChatConfig,
    chat_completion,
    clamp_timeout_seconds,
    openai_config_from_settings,
)


logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You check photos submitted to a beer-drinking tally. "
    "Decide whether the photo plausibly shows the drink the user says they are having. "
    'Reply with a JSON object only: {"accepted": true|false, "message": "<one short sentence>"}.'
)


class VerificationVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore")

    accepted: bool
    message: str = Field(default="", max_length=500)


class DrinkVerifier(Protocol):
    """Judges a drink photo. Implementations raise ``CollaboratorUnavailable`` on any failure."""

    async def verify(self, *, image_data_url: str, label: str) -> VerificationVerdict: ...


class FakeDrinkVerifier:
    """Offline verifier: accepts every photo."""

    async def verify(self, *, image_data_url: str, label: str) -> VerificationVerdict:
        _ = image_data_url
        return VerificationVerdict(accepted=True, message=f"Looks like a {label} to me. Cheers!")


class OpenAIDrinkVerifier:
    def __init__(self, cfg: OpenAIChatConfig, *, timeout_s: float):
        self._cfg: OpenAIChatConfig = cfg
        self._timeout_s: float = clamp_timeout_seconds(timeout_s, default=20.0)

    async def verify(self, *, image_data_url: str, label: str) -> VerificationVerdict:
        messages: list[dict[str, object]] = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": f"I am drinking: {label}"},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            },
        ]
        content = await chat_completion(
            self._cfg,
            messages=messages,
            timeout_s=self._timeout_s,
            max_tokens=200,
            temperature=0.0,
            json_object=True,
        )
        try:
            verdict = VerificationVerdict.model_validate_json(_strip_code_fence(content))
        except ValidationError as exc:
            logger.warning("verifier returned an unparseable verdict")
            raise CollaboratorUnavailable("bad_verdict") from exc
        return verdict


def _strip_code_fence(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        t = t.strip("`")
        if t.lower().startswith("json"):
            t = t[4:]
    return t.strip()


def build_drink_verifier(s: Settings) -> DrinkVerifier:
    if s.openai_mode == "openai":
        return OpenAIDrinkVerifier(
            openai_config_from_settings(s),
            timeout_s=s.verification_timeout_seconds,
        )
    return FakeDrinkVerifier()
