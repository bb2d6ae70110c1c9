"""Ownership gate: decides whether a tenant may touch a credential record.

Runs before any envelope is encoded or decoded. The codec has no notion of
ownership, so every call path into it goes through here first.
"""

import logging

from tokenvault.exceptions import MigrationForbidden, RecordForbidden, RecordNotFound
from tokenvault.types import TenantIdentity, TenantRole

logger = logging.getLogger(__name__)


class OwnershipGate:
    """Tenant isolation for single records, admin check for bulk migration.

    Args:
        store: A :class:`~tokenvault.db.repository.CredentialStore` (or any
            object with ``get_owner`` and ``get_role`` coroutines).
    """

    def __init__(self, store) -> None:
        self._store = store

    async def authorize_record_access(self, tenant_id: str, record_id: str) -> None:
        """Allow only the owner of *record_id*.

        Raises:
            RecordNotFound: no such record.
            RecordForbidden: record owned by another tenant.

        Both are ``NotAccessible`` and must look identical to the caller.
        """
        owner = await self._store.get_owner(record_id)
        if owner is None:
            logger.warning("[Gate] Record %s not found (requested by tenant %s)", record_id, tenant_id)
            raise RecordNotFound(record_id=record_id)
        if owner != tenant_id:
            logger.warning(
                "[Gate] Tenant %s denied access to record %s owned by another tenant", tenant_id, record_id
            )
            raise RecordForbidden(record_id=record_id, tenant_id=tenant_id)

    async def authorize_migration(self, tenant_id: str) -> TenantIdentity:
        """Allow only tenants whose stored role is administrator.

        Raises:
            MigrationForbidden: any other role, or no role at all.
        """
        role = await self._store.get_role(tenant_id)
        if role != TenantRole.ADMIN:
            logger.warning("[Gate] Tenant %s attempted migration without admin role", tenant_id)
            raise MigrationForbidden(tenant_id=tenant_id)
        return TenantIdentity(tenant_id=tenant_id, role=role)
