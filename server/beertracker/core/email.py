from __future__ import annotations


def normalize_email(raw: str) -> str:
    return raw.strip().lower()


def looks_like_email(raw: str) -> bool:
    s = raw.strip()
    if s.count("@") != 1:
        return False
    local, _, domain = s.partition("@")
    return local != "" and "." in domain and not domain.startswith(".")


def email_local_part(raw: str) -> str:
    return normalize_email(raw).split("@", 1)[0]
