"""TokenVault — encryption at rest for connected-account tokens.

Usage:
    from tokenvault import EnvelopeCodec

    codec = EnvelopeCodec(master_secret)
    stored = codec.encode("EAAB...access-token")
    assert codec.decode(stored) == "EAAB...access-token"
"""

from tokenvault.types import (
    SchemeVersion, TenantRole, TenantIdentity, CredentialRecord,
    DecryptedCredential, MigrationReport,
)
from tokenvault.exceptions import (
    TokenVaultError, Unauthenticated, NotAccessible, RecordNotFound,
    RecordForbidden, MigrationForbidden, EnvelopeError, IntegrityError,
    MalformedEnvelope, UnknownSchemeVersion, EncryptionUnavailable, StoreUnavailable,
)
from tokenvault.crypto.codec import EnvelopeCodec
from tokenvault.version import __version__

__all__ = [
    "SchemeVersion", "TenantRole", "TenantIdentity", "CredentialRecord",
    "DecryptedCredential", "MigrationReport",
    "TokenVaultError", "Unauthenticated", "NotAccessible", "RecordNotFound",
    "RecordForbidden", "MigrationForbidden", "EnvelopeError", "IntegrityError",
    "MalformedEnvelope", "UnknownSchemeVersion", "EncryptionUnavailable", "StoreUnavailable",
    "EnvelopeCodec",
    "__version__",
]
