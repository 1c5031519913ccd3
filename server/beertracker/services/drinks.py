"""Drink recording: validate, optionally verify, then increment the ledger.

Collaborator calls are made strictly outside the ledger transaction: the
verifier runs before ``LedgerStore.record_drink`` and the roast writer after
it, so a slow collaborator never holds a database lock.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Literal

from beertracker.metrics.prometheus import (
    record_collaborator_failure,
    record_drink_recorded,
    record_verification,
)
from beertracker.services.errors import CollaboratorUnavailable, InvalidInput
from beertracker.services.flavor_text import RoastWriter
from beertracker.services.ledger import LedgerStore, UserRecord
from beertracker.services.verification import DrinkVerifier, VerificationVerdict


logger = logging.getLogger(__name__)

FailurePolicy = Literal["open", "closed"]

FAILED_OPEN_MESSAGE = "We couldn't check your photo right now, so it counts on trust. Cheers!"
FAILED_CLOSED_MESSAGE = "We couldn't check your photo right now. Please try again in a moment."

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


@dataclass(frozen=True)
class DrinkOutcome:
    recorded: bool
    beer_count: int
    verified: bool
    verification_message: str | None = None
    roast: str | None = None


def normalize_label(raw: str | None, *, max_length: int) -> str:
    label = (raw or "").strip()
    if label == "":
        raise InvalidInput("beer_type_required")
    if len(label) > max_length:
        raise InvalidInput("beer_type_too_long")
    return label


def _sniff_mime(data: bytes) -> str | None:
    for sig, mime in _IMAGE_SIGNATURES:
        if data.startswith(sig):
            return mime
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def photo_data_url(raw: str, *, max_bytes: int) -> str:
    """Validate a base64 photo (bare or ``data:`` URL) and return it as a data URL."""
    s = raw.strip()
    if s.startswith("data:"):
        _, sep, s = s.partition(",")
        if sep == "":
            raise InvalidInput("photo_invalid")
    s = "".join(s.split())
    if s == "":
        raise InvalidInput("photo_invalid")
    # Reject before decoding anything absurdly large.
    if len(s) > (max_bytes * 4) // 3 + 4:
        raise InvalidInput("photo_too_large")
    try:
        data = base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("photo_invalid") from exc
    if len(data) > max_bytes:
        raise InvalidInput("photo_too_large")
    mime = _sniff_mime(data)
    if mime is None:
        raise InvalidInput("photo_invalid")
    return f"data:{mime};base64,{s}"


class DrinkRecorder:
    def __init__(
        self,
        ledger: LedgerStore,
        *,
        verifier: DrinkVerifier,
        roast_writer: RoastWriter | None,
        goal: int,
        photo_required: bool,
        photo_max_bytes: int,
        label_max_length: int,
        failure_policy: FailurePolicy,
        verification_timeout_s: float,
        roast_timeout_s: float,
    ):
        self._ledger: LedgerStore = ledger
        self._verifier: DrinkVerifier = verifier
        self._roast_writer: RoastWriter | None = roast_writer
        self._goal: int = goal
        self._photo_required: bool = photo_required
        self._photo_max_bytes: int = photo_max_bytes
        self._label_max_length: int = label_max_length
        self._failure_policy: FailurePolicy = failure_policy
        self._verification_timeout_s: float = verification_timeout_s
        self._roast_timeout_s: float = roast_timeout_s

    async def record(self, user: UserRecord, *, beer_type: str | None, photo: str | None) -> DrinkOutcome:
        label = normalize_label(beer_type, max_length=self._label_max_length)

        image: str | None = None
        if photo is not None and photo.strip() != "":
            image = photo_data_url(photo, max_bytes=self._photo_max_bytes)
        elif self._photo_required:
            raise InvalidInput("photo_required")

        verdict: VerificationVerdict | None = None
        if image is not None:
            verdict = await self._verify(image, label)
            if not verdict.accepted:
                logger.info("drink rejected user_id=%s", user.id)
                return DrinkOutcome(
                    recorded=False,
                    beer_count=user.beer_count,
                    verified=False,
                    verification_message=verdict.message,
                )
        else:
            record_verification("skipped")

        new_count = self._ledger.record_drink(user.id, label)
        record_drink_recorded()
        logger.info("drink recorded user_id=%s count=%d", user.id, new_count)

        roast = await self._roast(user.display_name, label, new_count)
        return DrinkOutcome(
            recorded=True,
            beer_count=new_count,
            verified=True,
            verification_message=verdict.message if verdict is not None else None,
            roast=roast,
        )

    async def _verify(self, image: str, label: str) -> VerificationVerdict:
        try:
            verdict = await asyncio.wait_for(
                self._verifier.verify(image_data_url=image, label=label),
                timeout=self._verification_timeout_s,
            )
        except (CollaboratorUnavailable, TimeoutError) as exc:
            logger.warning(
                "drink verification unavailable policy=%s error=%s",
                self._failure_policy,
                type(exc).__name__,
            )
            return self._failure_verdict()
        except Exception:
            logger.exception("drink verification failed policy=%s", self._failure_policy)
            return self._failure_verdict()

        record_verification("accepted" if verdict.accepted else "rejected")
        return verdict

    def _failure_verdict(self) -> VerificationVerdict:
        record_collaborator_failure("verification")
        if self._failure_policy == "open":
            record_verification("failed_open")
            return VerificationVerdict(accepted=True, message=FAILED_OPEN_MESSAGE)
        record_verification("failed_closed")
        return VerificationVerdict(accepted=False, message=FAILED_CLOSED_MESSAGE)

    async def _roast(self, display_name: str, label: str, count: int) -> str | None:
        if self._roast_writer is None:
            return None
        try:
            remaining = max(0, self._goal - self._ledger.total_beers())
            text = await asyncio.wait_for(
                self._roast_writer.write(
                    display_name=display_name, label=label, count=count, remaining=remaining
                ),
                timeout=self._roast_timeout_s,
            )
        except (CollaboratorUnavailable, TimeoutError) as exc:
            record_collaborator_failure("flavor_text")
            logger.warning("flavor text unavailable error=%s", type(exc).__name__)
            return None
        except Exception:
            # The drink is already committed; nothing here may turn it into an error.
            logger.exception("flavor text failed")
            return None
        return text or None
