"""SmartScreen navigate-check request signing.

The service only accepts requests whose Authorization header carries a
"patent hash" of the exact JSON body. The hash is two multiply/halfword-swap
mixing passes over the body's UTF-16 code units, seeded from the body's MD5
digest. All arithmetic is modulo 2**32.
"""

from __future__ import annotations

import base64
import hashlib
import json
import struct
import uuid
from typing import Optional
from urllib.parse import urlparse

NAVIGATE_URL = "https://bf.smartscreen.microsoft.com/api/browser/Navigate/1"
DEFAULT_AUTH_ID = "6D2E7D9C-1334-4FC2-A549-5EC504F0E8F1"

MASK32 = 0xFFFFFFFF

_PASS_A_CONSTANTS = (
    (4010109435, 1755016095, 240755605, 3287280279),
    (3273069531, 3721207567, 984919853, 901586633),
)
_PASS_B_CONSTANTS = (
    (3482890513, 2265471903, 315537773, 629022083, 0),
    (2725517045, 3548616447, 2090019721, 3215236969, 0),
)


def _swap_halfwords(value: int) -> int:
    value &= MASK32
    return ((value >> 16) + (value << 16)) & MASK32


class _WordStream:
    """Little-endian 32-bit words over UTF-16 code units."""

    def __init__(self, payload: str):
        raw = payload.encode("utf-16-le")
        self.units = struct.unpack(f"<{len(raw) // 2}H", raw)
        self.length = (len(self.units) // 4) & ~1

    def word(self, index: int) -> int:
        base = 4 * index
        c = self.units
        # Code units are 16 bits wide, so neighbouring units overlap when ORed.
        return (c[base] | (c[base + 1] << 8) | (c[base + 2] << 16) | (c[base + 3] << 24)) & MASK32


def _pass_a(stream: _WordStream, r1: int, r2: int) -> tuple[int, int]:
    t = 0
    total = 0
    index = 0
    while stream.length - index > 1:
        for r, (c1, c2, c3, c4) in ((r1, _PASS_A_CONSTANTS[0]), (r2, _PASS_A_CONSTANTS[1])):
            t = (t + stream.word(index)) & MASK32
            index += 1
            t = (t * r + _swap_halfwords(t) * c1) & MASK32
            t = (_swap_halfwords(t) * c2 + t * c3) & MASK32
            t = (t + _swap_halfwords(t) * c4) & MASK32
            total = (total + t) & MASK32
    return t, total


def _pass_b(stream: _WordStream, r1: int, r2: int) -> tuple[int, int]:
    t = 0
    total = 0
    index = 0
    while stream.length - index > 1:
        for r, (c1, c2, c3, c4, c5) in ((r1, _PASS_B_CONSTANTS[0]), (r2, _PASS_B_CONSTANTS[1])):
            t = (t + stream.word(index)) & MASK32
            index += 1
            t = (t * r) & MASK32
            u = _swap_halfwords(t)
            t = (u * c1) & MASK32
            t = (_swap_halfwords(t) * c2) & MASK32
            t = (_swap_halfwords(t) * c3) & MASK32
            t = (_swap_halfwords(t) * c4) & MASK32
            t = (t + u * c5) & MASK32
            total = (total + t) & MASK32
    return t, total


def patent_hash(payload: str) -> tuple[str, str]:
    """Return (hash, key), both base64, for a request body."""
    digest = hashlib.md5(payload.encode("utf-8")).digest()
    key = base64.b64encode(digest).decode("ascii")

    seed0, seed1 = struct.unpack_from("<II", digest, 0)
    r1 = 1 | seed0
    r2 = 1 | seed1

    stream = _WordStream(payload)
    final = (0, 0)
    if stream.length >= 2 and stream.length % 2 == 0:
        a_t, a_sum = _pass_a(stream, r1, r2)
        b_t, b_sum = _pass_b(stream, r1, r2)
        final = (a_t ^ b_t, a_sum ^ b_sum)

    hashed = base64.b64encode(struct.pack("<II", *final)).decode("ascii")
    return hashed, key


def build_authorization(payload: str, auth_id: str = DEFAULT_AUTH_ID) -> str:
    hashed, key = patent_hash(payload)
    token = json.dumps({"authId": auth_id, "hash": hashed, "key": key}, separators=(",", ":"))
    return "SmartScreenHash " + base64.b64encode(token.encode("utf-8")).decode("ascii")


def normalize_destination(url: str) -> str:
    """scheme://host/path with the host lowercased; query and fragment dropped."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Cannot build SmartScreen destination from {url!r}")
    return f"{parsed.scheme.lower()}://{parsed.hostname.lower()}{parsed.path or '/'}"


def build_navigate_payload(
    url: str,
    user_agent: str,
    correlation_id: Optional[str] = None,
) -> str:
    """Serialize the Navigate request body exactly as it will be signed and sent."""
    body = {
        "correlationId": correlation_id or str(uuid.uuid4()),
        "destination": {"uri": normalize_destination(url)},
        "identity": {
            "client": {"version": "1.0"},
            "device": {"id": str(uuid.uuid5(uuid.NAMESPACE_URL, "cloakwatch"))},
            "user": {"locale": "en-US"},
        },
        "userAgent": user_agent,
    }
    return json.dumps(body, separators=(",", ":"))


def is_flagged(response: dict) -> bool:
    """Blocked, or categorized as malicious/phishing."""
    if not isinstance(response, dict):
        return False
    category = str(response.get("responseCategory") or "")
    return response.get("allow") is False or category in {"Malicious", "Phishing"}
