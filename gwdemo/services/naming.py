from __future__ import annotations

import random
import re
import secrets

DEPLOYMENT_NAME_RE = re.compile(r"^[A-Za-z0-9_.()-]{1,64}$")
_NON_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")

MIN_RANDOM_LEN = 5
MAX_DEPLOYMENT_NAME_LEN = 64
DEPLOYMENT_SUFFIX_LEN = 6

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _random_chars(length: int, rng: random.Random | None) -> str:
    if rng is None:
        return "".join(secrets.choice(_BASE36) for _ in range(length))
    return "".join(rng.choice(_BASE36) for _ in range(length))


def random_resource_name(prefix: str, max_len: int, *, rng: random.Random | None = None) -> str:
    """Return ``prefix`` (lower-cased) padded with random characters to exactly ``max_len``.

    When the prefix leaves room for fewer than five random characters the
    whole name is random, so short limits still produce unique names.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    lowered = prefix.lower()
    if max_len < len(lowered) + MIN_RANDOM_LEN:
        return _random_chars(max_len, rng)
    return lowered + _random_chars(max_len - len(lowered), rng)


def deployment_name(gateway_name: str, stage: str, *, rng: random.Random | None = None) -> str:
    base = _NON_NAME_RE.sub("-", f"{gateway_name}-{stage}").strip("-") or "gateway"
    base = base[: MAX_DEPLOYMENT_NAME_LEN - (DEPLOYMENT_SUFFIX_LEN + 1)].rstrip("-.")
    name = f"{base}-{_random_chars(DEPLOYMENT_SUFFIX_LEN, rng)}"
    if not DEPLOYMENT_NAME_RE.fullmatch(name):
        raise ValueError("generated deployment name is not valid")
    return name
