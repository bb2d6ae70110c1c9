"""Wire format for stored secrets.

Every stored value carries its own scheme tag so rows at different versions
can sit side by side in the same table:

* ``v2:<b64 salt16>:<b64 nonce12>:<b64 ciphertext||tag>``
* ``v1:<b64 iv>:<b64 xor data>``  (legacy, read only)
* anything else is a value written before encryption existed
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from tokenvault.exceptions import MalformedEnvelope
from tokenvault.types import SchemeVersion

V2_PREFIX = "v2:"
V1_PREFIX = "v1:"

SALT_BYTES = 16
NONCE_BYTES = 12
TAG_BYTES = 16


def detect_version(value: str) -> SchemeVersion:
    """Classify a stored value by its prefix without decrypting it."""
    if value.startswith(V2_PREFIX):
        return SchemeVersion.V2
    if value.startswith(V1_PREFIX):
        return SchemeVersion.V1
    return SchemeVersion.PLAINTEXT


def _b64decode(text: str, field: str, version: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as exc:
        raise MalformedEnvelope(f"{version} envelope has invalid base64 in {field}", version=version) from exc


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class EncryptionEnvelope:
    """A parsed v2 envelope. Immutable; a new secret always gets a new one."""

    salt: bytes
    nonce: bytes
    ciphertext: bytes  # AES-GCM output, tag appended
    version: SchemeVersion = SchemeVersion.V2

    def __post_init__(self) -> None:
        if len(self.salt) != SALT_BYTES:
            raise MalformedEnvelope(f"v2 salt must be {SALT_BYTES} bytes, got {len(self.salt)}", version="v2")
        if len(self.nonce) != NONCE_BYTES:
            raise MalformedEnvelope(f"v2 nonce must be {NONCE_BYTES} bytes, got {len(self.nonce)}", version="v2")
        if len(self.ciphertext) < TAG_BYTES:
            raise MalformedEnvelope("v2 ciphertext is shorter than the authentication tag", version="v2")

    def serialize(self) -> str:
        return f"{V2_PREFIX}{_b64encode(self.salt)}:{_b64encode(self.nonce)}:{_b64encode(self.ciphertext)}"

    @classmethod
    def parse(cls, value: str) -> "EncryptionEnvelope":
        """Parse a ``v2:`` string.

        Raises:
            MalformedEnvelope: wrong prefix or field count, bad base64, or a
                salt/nonce/ciphertext of the wrong length.
        """
        if not value.startswith(V2_PREFIX):
            raise MalformedEnvelope("Not a v2 envelope", version="v2")
        parts = value.split(":")
        if len(parts) != 4:
            raise MalformedEnvelope(f"v2 envelope needs 4 fields, got {len(parts)}", version="v2")
        _, salt_b64, nonce_b64, data_b64 = parts
        return cls(
            salt=_b64decode(salt_b64, "salt", "v2"),
            nonce=_b64decode(nonce_b64, "nonce", "v2"),
            ciphertext=_b64decode(data_b64, "ciphertext", "v2"),
        )


@dataclass(frozen=True)
class LegacyEnvelope:
    """A parsed v1 envelope.

    ``iv_text`` is kept as the original base64 text because the legacy key
    was derived from the text, not the decoded bytes.
    """

    iv_text: str
    data: bytes
    version: SchemeVersion = SchemeVersion.V1

    @classmethod
    def parse(cls, value: str) -> "LegacyEnvelope":
        if not value.startswith(V1_PREFIX):
            raise MalformedEnvelope("Not a v1 envelope", version="v1")
        parts = value.split(":")
        if len(parts) != 3:
            raise MalformedEnvelope(f"v1 envelope needs 3 fields, got {len(parts)}", version="v1")
        _, iv_text, data_b64 = parts
        _b64decode(iv_text, "iv", "v1")
        return cls(iv_text=iv_text, data=_b64decode(data_b64, "data", "v1"))


def describe(value: str) -> dict:
    """Summarise a stored value for operators. Never includes secret bytes."""
    version = detect_version(value)
    if version == SchemeVersion.V2:
        env = EncryptionEnvelope.parse(value)
        return {
            "version": version.name,
            "salt_bytes": len(env.salt),
            "nonce_bytes": len(env.nonce),
            "ciphertext_bytes": len(env.ciphertext) - TAG_BYTES,
            "tag_bytes": TAG_BYTES,
        }
    if version == SchemeVersion.V1:
        env = LegacyEnvelope.parse(value)
        return {"version": version.name, "iv_text": env.iv_text, "ciphertext_bytes": len(env.data)}
    return {"version": version.name, "length": len(value)}
