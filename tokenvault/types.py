"""All shared types and enums. Everything imports from here."""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field

from tokenvault.exceptions import UnknownSchemeVersion


# ── Enums ──────────────────────────────────────────────────────────────

class SchemeVersion(IntEnum):
    PLAINTEXT = 0   # historical rows written before any encryption existed
    V1 = 1          # repeating-XOR, decode only
    V2 = 2          # PBKDF2-SHA256 + AES-256-GCM

    @classmethod
    def current(cls) -> "SchemeVersion":
        return cls.V2

    @classmethod
    def from_column(cls, value: Optional[int]) -> "SchemeVersion":
        """Storage keeps NULL for rows that predate the version column.

        Raises:
            UnknownSchemeVersion: any other value outside the enum.
        """
        if value is None:
            return cls.PLAINTEXT
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownSchemeVersion(f"Unrecognised scheme version {value!r}", version=value) from exc


class TenantRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Written to the legacy plaintext columns once a secret lives only as ciphertext.
REDACTED_SENTINEL = "***ENCRYPTED***"


# ── Core Data Shapes ───────────────────────────────────────────────────

class TenantIdentity(BaseModel):
    """Who is calling. Derived per request, never stored."""
    tenant_id: str
    role: TenantRole = TenantRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == TenantRole.ADMIN


class CredentialRecord(BaseModel):
    """One connected third-party account, as the store hands it out.

    ``access_secret_envelope`` is whatever ``EnvelopeCodec.decode`` accepts:
    a v2 or v1 envelope, or a pre-encryption plaintext value. It is ``None``
    when the plaintext column was redacted but no ciphertext was ever written.
    """
    id: str
    owner_tenant_id: str
    platform: str = ""
    account_name: str = ""
    external_account_id: Optional[str] = None
    access_secret_envelope: Optional[str] = None
    refresh_secret_envelope: Optional[str] = None
    # None when the stored version column holds a value this release does not know.
    scheme_version: Optional[SchemeVersion] = SchemeVersion.PLAINTEXT
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(id={self.id!r}, owner_tenant_id={self.owner_tenant_id!r}, "
            f"platform={self.platform!r}, scheme_version={getattr(self.scheme_version, 'name', None)})"
        )

    __str__ = __repr__


class DecryptedCredential(BaseModel):
    """Record metadata plus plaintext secrets. Transient: never persisted or logged."""
    id: str
    owner_tenant_id: str
    platform: str = ""
    account_name: str = ""
    external_account_id: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    scheme_version: SchemeVersion = SchemeVersion.V2
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"DecryptedCredential(id={self.id!r}, access_token='***', refresh_token='***')"

    __str__ = __repr__


class MigrationReport(BaseModel):
    """Outcome of one migration pass."""
    migrated_count: int = 0
    error_count: int = 0
    skipped_count: int = 0          # already v2, or claimed by a concurrent pass
    dry_run: bool = False
