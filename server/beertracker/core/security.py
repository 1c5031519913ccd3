from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import uuid


_PBKDF2_ALG = "pbkdf2_sha256"
_PBKDF2_HASH_NAME = "sha256"
_PBKDF2_ITERATIONS = 200_000
_PBKDF2_SALT_BYTES = 16

# 32 random bytes, well above the 128-bit floor for unguessable session tokens.
_SESSION_TOKEN_BYTES = 32

PASSWORD_MIN_LENGTH = 6


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    if data == "":
        raise ValueError("invalid base64 input")
    padded = data + "=" * ((4 - (len(data) % 4)) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except Exception as exc:
        raise ValueError("invalid base64 input") from exc


def hash_password(password: str) -> str:
    if password == "":
        raise ValueError("password must be a non-empty string")

    salt = secrets.token_bytes(_PBKDF2_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac(
        _PBKDF2_HASH_NAME,
        password.encode("utf-8"),
        salt,
        _PBKDF2_ITERATIONS,
        dklen=32,
    )
    return f"{_PBKDF2_ALG}${_PBKDF2_ITERATIONS}${_b64url_encode(salt)}${_b64url_encode(dk)}"


def verify_password(password: str, stored: str) -> bool:
    try:
        alg, iterations_s, salt_s, hash_s = stored.split("$", 3)
        if alg != _PBKDF2_ALG:
            return False
        iterations = int(iterations_s)
        if iterations <= 0:
            return False
        salt = _b64url_decode(salt_s)
        expected = _b64url_decode(hash_s)
    except Exception:
        return False

    try:
        actual = hashlib.pbkdf2_hmac(
            _PBKDF2_HASH_NAME,
            password.encode("utf-8"),
            salt,
            iterations,
            dklen=len(expected),
        )
    except Exception:
        return False

    return hmac.compare_digest(actual, expected)


def validate_password_policy(password: str) -> None:
    if password == "":
        raise ValueError("password must be non-empty")
    if any(ch.isspace() for ch in password):
        raise ValueError("password must not contain whitespace")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"password must be at least {PASSWORD_MIN_LENGTH} characters")


def new_session_token() -> str:
    return _b64url_encode(secrets.token_bytes(_SESSION_TOKEN_BYTES))


def hash_session_token(token: str) -> str:
    if token == "":
        raise ValueError("token must be a non-empty string")
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_invite_code() -> str:
    return uuid.uuid4().hex[:8].upper()


def new_password_reset_code() -> str:
    return secrets.token_hex(5).upper()


def hash_password_reset_code(code: str) -> str:
    code = code.strip().upper()
    if code == "":
        raise ValueError("code must be a non-empty string")
    return hashlib.sha256(code.encode("utf-8")).hexdigest()
