"""Typed exception hierarchy. Every error TokenVault can raise."""


class TokenVaultError(Exception):
    """Base exception for all TokenVault errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Authentication ───────────────────────────────────────────────────────────


class Unauthenticated(TokenVaultError):
    """Bearer credential missing, malformed, expired, or badly signed."""
    pass


# ── Authorization ────────────────────────────────────────────────────────────


class NotAccessible(TokenVaultError):
    """Record does not exist or the caller may not touch it.

    Callers see one error for every subclass so that record existence cannot
    be probed across tenants. The subclass is for operator logs only.
    """
    def __init__(self, message: str = "Record not accessible", record_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.record_id = record_id


class RecordNotFound(NotAccessible):
    """No credential record with this ID."""
    pass


class RecordForbidden(NotAccessible):
    """Record exists but belongs to another tenant."""
    def __init__(self, message: str = "Record not accessible", record_id: str = "", tenant_id: str = "", **kwargs):
        super().__init__(message, record_id=record_id, **kwargs)
        self.tenant_id = tenant_id


class MigrationForbidden(NotAccessible):
    """Caller is not an administrator."""
    def __init__(self, message: str = "Administrator role required", tenant_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.tenant_id = tenant_id


# ── Envelopes ────────────────────────────────────────────────────────────────


class EnvelopeError(TokenVaultError):
    """A stored envelope could not be turned back into plaintext."""
    pass


class IntegrityError(EnvelopeError):
    """v2 authentication tag did not verify: corruption or tampering."""
    pass


class MalformedEnvelope(EnvelopeError):
    """Stored value is structurally invalid (field count, base64, lengths)."""
    def __init__(self, message: str, version: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.version = version


class UnknownSchemeVersion(EnvelopeError):
    """Stored ``encryption_version`` is not a scheme this release knows."""
    def __init__(self, message: str, version=None, **kwargs):
        super().__init__(message, **kwargs)
        self.version = version


class EncryptionUnavailable(TokenVaultError):
    """No master secret configured; the codec refuses to run."""
    pass


# ── Persistence ──────────────────────────────────────────────────────────────


class StoreUnavailable(TokenVaultError):
    """Persistence layer failed. Safe to retry."""
    def __init__(self, message: str, operation: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
