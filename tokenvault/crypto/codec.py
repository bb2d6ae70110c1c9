"""Envelope codec: PBKDF2 + AES-256-GCM for new writes, legacy XOR for reads."""

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from tokenvault.crypto.envelope import (
    NONCE_BYTES,
    SALT_BYTES,
    EncryptionEnvelope,
    LegacyEnvelope,
    detect_version,
)
from tokenvault.exceptions import EncryptionUnavailable, IntegrityError, MalformedEnvelope
from tokenvault.types import SchemeVersion

logger = logging.getLogger(__name__)

DEFAULT_KDF_ITERATIONS = 100_000
KEY_BYTES = 32
_V1_KEY_BYTES = 32


def _derive_key(master_secret: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(master_secret.encode("utf-8"))


def _fold_v1_key(master_secret: str, iv_text: str) -> bytes:
    # Legacy derivation: XOR-fold secret+iv text into 32 bytes. Not a KDF.
    derived = bytearray(_V1_KEY_BYTES)
    for i, byte in enumerate((master_secret + iv_text).encode("utf-8")):
        derived[i % _V1_KEY_BYTES] ^= byte
    return bytes(derived)


class EnvelopeCodec:
    """Turns plaintext secrets into versioned envelopes and back.

    Writes are always v2. Reads accept v2, legacy v1, and untagged values
    (returned unchanged, for rows stored before encryption existed).

    The codec holds no per-call state and is safe to share across concurrent
    requests. Key derivation is deliberately slow; async callers should run
    :meth:`encode` and :meth:`decode` in an executor.

    Args:
        master_secret: Deployment master secret (``TOKENVAULT_TOKEN_ENCRYPTION_KEY``).
            When empty the codec refuses every cryptographic operation
            rather than storing plaintext.
        kdf_iterations: PBKDF2 rounds. Every v2 envelope in a deployment must
            have been written with the same count.
    """

    def __init__(self, master_secret: str = "", kdf_iterations: int = DEFAULT_KDF_ITERATIONS) -> None:
        if kdf_iterations < 1:
            raise ValueError("kdf_iterations must be positive")
        self._secret = master_secret or ""
        self._iterations = kdf_iterations
        if not self._secret:
            logger.warning(
                "[Codec] No master secret configured. Encryption and decryption of "
                "envelopes are disabled. Set TOKENVAULT_TOKEN_ENCRYPTION_KEY."
            )

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    @property
    def kdf_iterations(self) -> int:
        return self._iterations

    def _require_secret(self) -> str:
        if not self._secret:
            raise EncryptionUnavailable("Master secret is not configured")
        return self._secret

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encode(self, plaintext: str) -> str:
        """Seal *plaintext* into a fresh v2 envelope string.

        Each call draws a new salt and nonce, so encoding the same value
        twice yields two different, equally valid envelopes.

        Raises:
            EncryptionUnavailable: no master secret configured.
        """
        secret = self._require_secret()
        salt = os.urandom(SALT_BYTES)
        nonce = os.urandom(NONCE_BYTES)
        key = _derive_key(secret, salt, self._iterations)
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return EncryptionEnvelope(salt=salt, nonce=nonce, ciphertext=sealed).serialize()

    def decode(self, value: str) -> str:
        """Recover the plaintext behind a stored value.

        Raises:
            IntegrityError: v2 tag did not verify.
            MalformedEnvelope: structurally invalid v1/v2 value.
            EncryptionUnavailable: tagged value but no master secret.
        """
        version = detect_version(value)
        if version == SchemeVersion.V2:
            return self._decode_v2(value)
        if version == SchemeVersion.V1:
            return self._decode_v1(value)
        return value

    def version_of(self, value: str) -> SchemeVersion:
        return detect_version(value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _decode_v2(self, value: str) -> str:
        envelope = EncryptionEnvelope.parse(value)
        key = _derive_key(self._require_secret(), envelope.salt, self._iterations)
        try:
            raw = AESGCM(key).decrypt(envelope.nonce, envelope.ciphertext, None)
        except InvalidTag as exc:
            raise IntegrityError("v2 envelope failed authentication") from exc
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEnvelope("v2 plaintext is not valid UTF-8", version="v2") from exc

    def _decode_v1(self, value: str) -> str:
        envelope = LegacyEnvelope.parse(value)
        key = _fold_v1_key(self._require_secret(), envelope.iv_text)
        raw = bytes(b ^ key[i % _V1_KEY_BYTES] for i, b in enumerate(envelope.data))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            # No tag in v1: a wrong key usually surfaces here, if at all.
            raise MalformedEnvelope("v1 plaintext is not valid UTF-8", version="v1") from exc


def encode(plaintext: str, master_secret: str, kdf_iterations: int = DEFAULT_KDF_ITERATIONS) -> str:
    """Functional form of :meth:`EnvelopeCodec.encode`."""
    return EnvelopeCodec(master_secret, kdf_iterations).encode(plaintext)


def decode(value: str, master_secret: str, kdf_iterations: int = DEFAULT_KDF_ITERATIONS) -> str:
    """Functional form of :meth:`EnvelopeCodec.decode`."""
    return EnvelopeCodec(master_secret, kdf_iterations).decode(value)
