"""TokenService — the three operations the rest of the application calls.

Every operation takes an already-verified tenant id, passes the ownership
gate, and only then touches the codec. Plaintext secrets exist only in the
arguments of ``encrypt_and_store`` and the return value of ``get_decrypted``.
"""

import asyncio
import logging
from typing import Optional

from tokenvault.auth.gate import OwnershipGate
from tokenvault.crypto.codec import EnvelopeCodec
from tokenvault.exceptions import RecordNotFound, UnknownSchemeVersion
from tokenvault.migration import MigrationCoordinator
from tokenvault.types import DecryptedCredential, MigrationReport, SchemeVersion

logger = logging.getLogger(__name__)


class TokenService:
    """Encrypt, decrypt and migrate connected-account secrets.

    Args:
        store: A :class:`~tokenvault.db.repository.CredentialStore`.
        codec: A configured :class:`EnvelopeCodec`.
        migration_batch_size: Page size for the migration scan.
    """

    def __init__(self, store, codec: EnvelopeCodec, migration_batch_size: int = 100) -> None:
        self._store = store
        self._codec = codec
        self._gate = OwnershipGate(store)
        self._coordinator = MigrationCoordinator(store, codec, self._gate, batch_size=migration_batch_size)

    async def _run_codec(self, fn, *args):
        # PBKDF2 is CPU-bound by construction; keep it off the event loop.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def encrypt_and_store(
        self,
        tenant_id: str,
        record_id: str,
        access_secret: str,
        refresh_secret: Optional[str] = None,
    ) -> None:
        """Encrypt fresh secrets for *record_id* and commit them as v2.

        Raises:
            NotAccessible: record missing or owned by someone else.
            EncryptionUnavailable: no master secret configured.
            StoreUnavailable: write failed; safe to retry.
        """
        await self._gate.authorize_record_access(tenant_id, record_id)

        access_envelope = await self._run_codec(self._codec.encode, access_secret)
        refresh_envelope = None
        if refresh_secret:
            refresh_envelope = await self._run_codec(self._codec.encode, refresh_secret)

        written = await self._store.put_envelopes(
            record_id, access_envelope, refresh_envelope, SchemeVersion.current(),
        )
        if not written:
            # Row vanished between the gate check and the write.
            raise RecordNotFound(record_id=record_id)
        logger.info("[TokenService] Tenant %s encrypted tokens for record %s", tenant_id, record_id)

    async def get_decrypted(self, tenant_id: str, record_id: str) -> DecryptedCredential:
        """Return the record with its secrets in plaintext.

        Raises:
            NotAccessible: record missing or owned by someone else.
            IntegrityError: a v2 envelope failed authentication.
            MalformedEnvelope: a stored value is structurally invalid.
            UnknownSchemeVersion: the stored version column is not recognised.
            StoreUnavailable: read failed; safe to retry.
        """
        await self._gate.authorize_record_access(tenant_id, record_id)

        record = await self._store.get(record_id)
        if record is None:
            raise RecordNotFound(record_id=record_id)
        if record.scheme_version is None:
            raise UnknownSchemeVersion(f"Record {record_id} has an unrecognised scheme version")

        access = None
        if record.access_secret_envelope is not None:
            access = await self._run_codec(self._codec.decode, record.access_secret_envelope)
        refresh = None
        if record.refresh_secret_envelope is not None:
            refresh = await self._run_codec(self._codec.decode, record.refresh_secret_envelope)

        logger.info("[TokenService] Tenant %s retrieved decrypted tokens for record %s", tenant_id, record_id)
        return DecryptedCredential(
            id=record.id,
            owner_tenant_id=record.owner_tenant_id,
            platform=record.platform,
            account_name=record.account_name,
            external_account_id=record.external_account_id,
            access_token=access,
            refresh_token=refresh,
            scheme_version=record.scheme_version,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    async def migrate_existing(self, tenant_id: str, dry_run: bool = False) -> MigrationReport:
        """Re-encrypt every pre-v2 record. Administrator only.

        Raises:
            MigrationForbidden: caller is not an administrator.
        """
        return await self._coordinator.run(tenant_id, dry_run=dry_run)
