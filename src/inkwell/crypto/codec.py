"""AES-256-GCM envelope codec.

Learn: GCM is an AEAD mode — decryption checks an authentication tag, so a
flipped bit in the ciphertext, the tag, or the nonce (or the wrong key) makes
decrypt() fail instead of returning garbage. The price is that a nonce must
NEVER repeat under the same key, so every encrypt() call draws 12 fresh bytes
from os.urandom.

The cryptography library returns `ciphertext || tag` as one blob; we split the
trailing 16 bytes off so the row can store the three parts in separate columns.
"""

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from inkwell.errors import EncryptionError

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12
TAG_SIZE = 16


@dataclass(frozen=True)
class CipherConfig:
    """The process-wide symmetric key, validated once at startup."""

    key: bytes

    def __post_init__(self):
        if len(self.key) != KEY_SIZE:
            raise EncryptionError(
                f"Encryption key must be exactly {KEY_SIZE} bytes, got {len(self.key)}"
            )

    @classmethod
    def from_base64(cls, encoded: str) -> "CipherConfig":
        """Decode a base64 key. Fails closed — no truncation or padding."""
        if not encoded:
            raise EncryptionError("Encryption key is not set")
        try:
            key = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise EncryptionError("Encryption key is not valid base64")
        return cls(key=key)

    @classmethod
    def from_settings(cls, settings) -> "CipherConfig":
        return cls.from_base64(settings.encryption_key)


@dataclass(frozen=True)
class Envelope:
    """One encrypted field value. Immutable — re-encrypting makes a new one."""

    ciphertext: bytes
    nonce: bytes
    tag: bytes

    def to_columns(self) -> tuple[str, str, str]:
        """(ciphertext, nonce, tag) as base64 text for the three row columns."""
        return (
            base64.b64encode(self.ciphertext).decode("ascii"),
            base64.b64encode(self.nonce).decode("ascii"),
            base64.b64encode(self.tag).decode("ascii"),
        )

    @classmethod
    def from_columns(cls, ciphertext: str, nonce: str, tag: str) -> "Envelope":
        try:
            return cls(
                ciphertext=base64.b64decode(ciphertext, validate=True),
                nonce=base64.b64decode(nonce, validate=True),
                tag=base64.b64decode(tag, validate=True),
            )
        except (binascii.Error, ValueError, TypeError):
            raise EncryptionError("Stored envelope is not valid base64")


def _field(candidate: Any, name: str) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get(name)
    return getattr(candidate, name, None)


def is_envelope(candidate: Any) -> bool:
    """Structural check: nonce and tag both present.

    Used to tell migrated fields from legacy plaintext without attempting
    decryption. Accepts an Envelope, a mapping, or any object exposing
    `nonce`/`tag` attributes.
    """
    if candidate is None:
        return False
    return bool(_field(candidate, "nonce")) and bool(_field(candidate, "tag"))


class EncryptionCodec:
    """Encrypts and decrypts single string fields."""

    def __init__(self, config: CipherConfig):
        self._aead = AESGCM(config.key)

    def encrypt(self, plaintext: str) -> Envelope:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return Envelope(
            ciphertext=sealed[:-TAG_SIZE],
            nonce=nonce,
            tag=sealed[-TAG_SIZE:],
        )

    def decrypt(self, envelope: Envelope) -> str:
        """Verify the tag and return the plaintext. Raises EncryptionError."""
        if len(envelope.nonce) != NONCE_SIZE or len(envelope.tag) != TAG_SIZE:
            raise EncryptionError("Malformed envelope")
        try:
            plaintext = self._aead.decrypt(
                envelope.nonce, envelope.ciphertext + envelope.tag, None
            )
        except InvalidTag:
            raise EncryptionError("Authentication tag verification failed")
        return plaintext.decode("utf-8")

    def is_envelope(self, candidate: Any) -> bool:
        return is_envelope(candidate)

    # ─── Row helpers ─────────────────────────────────────

    def seal(self, plaintext: str) -> tuple[str, str, str]:
        """Encrypt straight to the (ciphertext, nonce, tag) column triple."""
        return self.encrypt(plaintext).to_columns()

    def open(
        self, stored: str, nonce: Optional[str], tag: Optional[str]
    ) -> tuple[str, bool]:
        """Decrypt-or-passthrough for one stored field.

        Returns (plaintext, was_legacy). A legacy field (nonce/tag absent) is
        returned as-is; the caller decides whether to upgrade it.
        """
        if not is_envelope({"nonce": nonce, "tag": tag}):
            return stored, True
        return self.decrypt(Envelope.from_columns(stored, nonce, tag)), False
