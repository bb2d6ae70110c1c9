"""Envelope codec — versioned, authenticated encryption of stored secrets."""

from tokenvault.crypto.codec import EnvelopeCodec, decode, encode
from tokenvault.crypto.envelope import EncryptionEnvelope, detect_version

__all__ = ["EnvelopeCodec", "EncryptionEnvelope", "detect_version", "encode", "decode"]
