"""Batch re-encryption of every record below the current scheme version.

Scheme lifecycle of a record: PLAINTEXT -> V1 -> V2, or PLAINTEXT -> V2.
There is no downgrade path, and V2 is terminal.
"""

import asyncio
import logging
from typing import Optional

from tokenvault.exceptions import TokenVaultError
from tokenvault.types import CredentialRecord, MigrationReport, SchemeVersion

logger = logging.getLogger(__name__)


class MigrationCoordinator:
    """Moves stored secrets onto the current envelope scheme.

    The caller is authorised once for the whole batch. Records are then
    processed one at a time: both envelope fields are decoded with their
    own scheme, re-encoded (fresh salt and nonce each), and committed in a
    single conditional write. A failing record is counted and left exactly
    as it was; the batch carries on.

    The scan pages by primary key and each commit is atomic, so a run can be
    interrupted between records and simply started again.
    """

    def __init__(self, store, codec, gate, batch_size: int = 100) -> None:
        self._store = store
        self._codec = codec
        self._gate = gate
        self._batch_size = batch_size

    async def run(self, tenant_id: str, dry_run: bool = False) -> MigrationReport:
        """Authorise *tenant_id* as administrator, then migrate every record.

        Raises:
            MigrationForbidden: caller is not an administrator. Nothing is read
                or written in that case.
            StoreUnavailable: the scan itself failed.
        """
        await self._gate.authorize_migration(tenant_id)
        target = SchemeVersion.current()
        report = MigrationReport(dry_run=dry_run)

        async for record in self._store.scan_below_version(target, batch_size=self._batch_size):
            outcome = await self._migrate_one(record, target, dry_run)
            if outcome == "migrated":
                report.migrated_count += 1
            elif outcome == "skipped":
                report.skipped_count += 1
            else:
                report.error_count += 1

        logger.info(
            "[Migration] Admin %s completed %smigration: %d migrated, %d errors, %d skipped",
            tenant_id,
            "dry-run " if dry_run else "",
            report.migrated_count,
            report.error_count,
            report.skipped_count,
        )
        return report

    async def _migrate_one(self, record: CredentialRecord, target: SchemeVersion, dry_run: bool) -> str:
        if record.scheme_version is None:
            logger.error("[Migration] Record %s has an unrecognised scheme version", record.id)
            return "error"
        fields = [v for v in (record.access_secret_envelope, record.refresh_secret_envelope) if v is not None]
        if fields and all(self._codec.version_of(v) >= target for v in fields):
            # Envelopes already current but the version column lags behind.
            logger.warning("[Migration] Record %s already holds %s envelopes; skipping", record.id, target.name)
            return "skipped"
        if record.access_secret_envelope is None:
            logger.error("[Migration] Record %s has no recoverable access secret", record.id)
            return "error"

        try:
            access_envelope, refresh_envelope = await self._reencrypt(record)
            if dry_run:
                return "migrated"
            claimed = await self._store.put_envelopes(
                record.id,
                access_envelope,
                refresh_envelope,
                target,
                expected_version=record.scheme_version,
            )
        except TokenVaultError as exc:
            logger.error("[Migration] Error migrating record %s: %s", record.id, exc.__class__.__name__)
            return "error"

        if not claimed:
            logger.info("[Migration] Record %s changed version during the pass; skipping", record.id)
            return "skipped"
        return "migrated"

    async def _reencrypt(self, record: CredentialRecord) -> tuple[str, Optional[str]]:
        loop = asyncio.get_running_loop()

        def work() -> tuple[str, Optional[str]]:
            access = self._codec.encode(self._codec.decode(record.access_secret_envelope))
            refresh = None
            if record.refresh_secret_envelope is not None:
                refresh = self._codec.encode(self._codec.decode(record.refresh_secret_envelope))
            return access, refresh

        return await loop.run_in_executor(None, work)
