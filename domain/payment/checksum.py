"""
PhonePe X-VERIFY checksum.

``sha256(payload).hexdigest() + "###" + salt_index``. Outbound requests sign the
base64 request body (or the status path plus salt key); inbound webhooks are
checked against the raw request body.
"""
from __future__ import annotations

import hashlib
from typing import Optional, Union

SEPARATOR = "###"

Payload = Union[str, bytes]


def compute(payload: Payload, salt_index: Union[int, str]) -> str:
    data = payload if isinstance(payload, bytes) else payload.encode("utf-8")
    return f"{hashlib.sha256(data).hexdigest().lower()}{SEPARATOR}{salt_index}"


def verify(payload: Payload, salt_index: Union[int, str], received: Optional[str]) -> bool:
    # Plain case-insensitive equality, not a constant-time comparison.
    if not received:
        return False
    return compute(payload, salt_index).lower() == received.strip().lower()
