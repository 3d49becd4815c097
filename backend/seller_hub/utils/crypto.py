"""At-rest protection for the upstream bearer token of a dashboard session.

Stored form::

    ENC:v1:<urlsafe-base64(nonce || ciphertext || tag)>

The AES-256-GCM key is derived from ``settings.secret_key`` with HKDF-SHA256
and the ciphertext is bound to the ``dashboard_sessions.upstream_token``
column through the associated data, so a blob copied from anywhere else does
not open here. A blob that fails to open reads back as ``None``: the session
then simply has no usable upstream token and the user has to sign in again.
Values stored before encryption was turned on (no prefix) are read as-is.
"""
from __future__ import annotations

import base64
import binascii
import os
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from seller_hub.config import settings
from seller_hub.utils.logger import logger

TOKEN_PREFIX = "ENC:v1:"
TOKEN_CONTEXT = b"dashboard_sessions.upstream_token"
NONCE_BYTES = 12


@lru_cache(maxsize=4)
def _cipher_for(secret: str) -> AESGCM:
    key = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=b"seller-hub/upstream-token/v1",
    ).derive(secret.encode("utf-8"))
    return AESGCM(key)


def _cipher() -> AESGCM:
    return _cipher_for(settings.secret_key)


def is_encrypted(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith(TOKEN_PREFIX)


def encrypt(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    nonce = os.urandom(NONCE_BYTES)
    sealed = _cipher().encrypt(nonce, str(token).encode("utf-8"), TOKEN_CONTEXT)
    return TOKEN_PREFIX + base64.urlsafe_b64encode(nonce + sealed).decode("ascii")


def decrypt(stored: Optional[str]) -> Optional[str]:
    """Read back a stored token; ``None`` when the blob cannot be opened."""
    if stored is None or not is_encrypted(stored):
        return stored

    try:
        blob = base64.urlsafe_b64decode(stored[len(TOKEN_PREFIX):].encode("ascii"))
    except (binascii.Error, ValueError) as e:
        logger.error(f"Stored upstream token is not valid base64: {e}")
        return None
    if len(blob) <= NONCE_BYTES:
        logger.error("Stored upstream token is truncated")
        return None

    try:
        plain = _cipher().decrypt(blob[:NONCE_BYTES], blob[NONCE_BYTES:], TOKEN_CONTEXT)
    except InvalidTag:
        logger.error("Stored upstream token failed authentication; treating the session as signed out")
        return None
    return plain.decode("utf-8")
