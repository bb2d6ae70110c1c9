"""Credential store adapter.

This is the ONLY layer that talks to the database. It knows how the legacy
plaintext columns and the envelope columns map onto a CredentialRecord and
nothing about encryption or ownership rules.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.db.models import ConnectedAccountModel, TenantRoleModel
from tokenvault.exceptions import StoreUnavailable, UnknownSchemeVersion
from tokenvault.types import REDACTED_SENTINEL, CredentialRecord, SchemeVersion, TenantRole

logger = logging.getLogger(__name__)


def _stored_value(encrypted: Optional[str], plain: Optional[str]) -> Optional[str]:
    """Pick what the codec should decode for one secret field."""
    if encrypted:
        return encrypted
    if plain is not None and plain != REDACTED_SENTINEL:
        return plain
    return None


def _scheme_of(row: ConnectedAccountModel) -> Optional[SchemeVersion]:
    try:
        return SchemeVersion.from_column(row.encryption_version)
    except UnknownSchemeVersion:
        logger.warning("[Store] Record %s has unrecognised encryption_version %r", row.id, row.encryption_version)
        return None


def _to_record(row: ConnectedAccountModel) -> CredentialRecord:
    return CredentialRecord(
        id=row.id,
        owner_tenant_id=row.owner_tenant_id,
        platform=row.platform or "",
        account_name=row.account_name or "",
        external_account_id=row.external_account_id,
        access_secret_envelope=_stored_value(row.access_token_encrypted, row.access_token),
        refresh_secret_envelope=_stored_value(row.refresh_token_encrypted, row.refresh_token),
        scheme_version=_scheme_of(row),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _below(target: SchemeVersion):
    col = ConnectedAccountModel.encryption_version
    return or_(col.is_(None), col < int(target))


class CredentialStore:
    """All persistence for credential records and tenant roles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("[Store] %s failed: %s", operation, exc.__class__.__name__)
            await self.session.rollback()
            raise StoreUnavailable(f"Credential store unavailable during {operation}", operation=operation) from exc

    # ── Reads ──

    async def get(self, record_id: str) -> Optional[CredentialRecord]:
        """Full record, envelopes included."""
        async with self._guard("get"):
            result = await self.session.execute(
                select(ConnectedAccountModel)
                .where(ConnectedAccountModel.id == record_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return _to_record(row) if row is not None else None

    async def get_owner(self, record_id: str) -> Optional[str]:
        """Owner tenant only. Used by the ownership gate so no secret columns are read."""
        async with self._guard("get_owner"):
            result = await self.session.execute(
                select(ConnectedAccountModel.owner_tenant_id).where(ConnectedAccountModel.id == record_id)
            )
            return result.scalar_one_or_none()

    async def get_role(self, tenant_id: str) -> TenantRole:
        async with self._guard("get_role"):
            result = await self.session.execute(
                select(TenantRoleModel.role).where(TenantRoleModel.tenant_id == tenant_id)
            )
            value = result.scalar_one_or_none()
        if value is None:
            return TenantRole.USER
        try:
            return TenantRole(value)
        except ValueError:
            logger.warning("[Store] Unknown role %r for tenant %s, treating as user", value, tenant_id)
            return TenantRole.USER

    async def scan_below_version(
        self, target_version: SchemeVersion, batch_size: int = 100,
    ) -> AsyncIterator[CredentialRecord]:
        """Yield every record whose scheme version is below *target_version*.

        Pages by primary key, so rows committed to the target version while
        the scan runs are never revisited, and an interrupted scan can simply
        be started again.
        """
        last_id = ""
        while True:
            async with self._guard("scan_below_version"):
                result = await self.session.execute(
                    select(ConnectedAccountModel)
                    .where(_below(target_version), ConnectedAccountModel.id > last_id)
                    .order_by(ConnectedAccountModel.id)
                    .limit(batch_size)
                    .execution_options(populate_existing=True)
                )
                page = [_to_record(row) for row in result.scalars().all()]
            if not page:
                return
            for record in page:
                yield record
            last_id = page[-1].id

    async def count_by_version(self) -> dict[SchemeVersion, int]:
        async with self._guard("count_by_version"):
            result = await self.session.execute(
                select(ConnectedAccountModel.encryption_version, func.count())
                .group_by(ConnectedAccountModel.encryption_version)
            )
            rows = result.all()
        counts = {v: 0 for v in SchemeVersion}
        for version, n in rows:
            try:
                counts[SchemeVersion.from_column(version)] += n
            except UnknownSchemeVersion:
                logger.warning("[Store] %d record(s) with unrecognised encryption_version %r", n, version)
        return counts

    # ── Writes ──

    async def put_envelopes(
        self,
        record_id: str,
        access_envelope: str,
        refresh_envelope: Optional[str],
        scheme_version: SchemeVersion,
        expected_version: Optional[SchemeVersion] = None,
    ) -> bool:
        """Atomically replace both envelopes and the version tag.

        One UPDATE, one commit. The legacy plaintext columns are redacted in
        the same statement. When *expected_version* is given the update only
        applies if the row is still at that version, which lets concurrent
        migration passes claim rows without overwriting each other.

        Returns:
            ``True`` if a row was updated.
        """
        col = ConnectedAccountModel.encryption_version
        conditions = [ConnectedAccountModel.id == record_id]
        if expected_version is not None:
            if expected_version == SchemeVersion.PLAINTEXT:
                conditions.append(or_(col.is_(None), col == 0))
            else:
                conditions.append(col == int(expected_version))
        stmt = (
            update(ConnectedAccountModel)
            .where(*conditions)
            .values(
                access_token_encrypted=access_envelope,
                refresh_token_encrypted=refresh_envelope,
                access_token=REDACTED_SENTINEL,
                refresh_token=REDACTED_SENTINEL if refresh_envelope else None,
                encryption_version=int(scheme_version),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._guard("put_envelopes"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount > 0

    async def create(
        self,
        owner_tenant_id: str,
        platform: str,
        account_name: str,
        external_account_id: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        access_token_encrypted: Optional[str] = None,
        refresh_token_encrypted: Optional[str] = None,
        encryption_version: Optional[int] = None,
    ) -> CredentialRecord:
        """Insert a connected account.

        New connections arrive without secrets; they are added through
        ``put_envelopes``. The token columns exist here so that rows written
        by older releases (plaintext or v1) can be reproduced.
        """
        now = datetime.now(timezone.utc)
        row = ConnectedAccountModel(
            id=str(uuid.uuid4()),
            owner_tenant_id=owner_tenant_id,
            platform=platform,
            account_name=account_name,
            external_account_id=external_account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_encrypted=access_token_encrypted,
            refresh_token_encrypted=refresh_token_encrypted,
            encryption_version=encryption_version,
            created_at=now,
            updated_at=now,
        )
        async with self._guard("create"):
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
        return _to_record(row)

    async def set_role(self, tenant_id: str, role: TenantRole) -> None:
        async with self._guard("set_role"):
            row = await self.session.get(TenantRoleModel, tenant_id)
            if row is None:
                self.session.add(TenantRoleModel(tenant_id=tenant_id, role=role.value))
            else:
                row.role = role.value
            await self.session.commit()
