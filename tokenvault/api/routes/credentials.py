"""Connected-account secret routes: store, read back, migrate."""

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from tokenvault.api.schemas import (
    ConnectAccountRequest,
    ConnectAccountResponse,
    MigrateRequest,
    MigrateResponse,
    StoreSecretsRequest,
    StoreSecretsResponse,
)
from tokenvault.db.repository import CredentialStore
from tokenvault.exceptions import (
    EncryptionUnavailable,
    EnvelopeError,
    NotAccessible,
    StoreUnavailable,
    Unauthenticated,
)
from tokenvault.service import TokenService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["credentials"])

NOT_ACCESSIBLE = "Record not accessible"


# ── Dependencies ──────────────────────────────────────────────────────────────

def _get_tenant(request: Request) -> str:
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        raise HTTPException(status_code=503, detail="Identity verifier not initialised.")
    try:
        return verifier.verify(request.headers.get("Authorization"))
    except Unauthenticated as exc:
        logger.warning("[Auth] Rejected request to %s: %s", request.url.path, exc)
        raise HTTPException(status_code=401, detail="Unauthorized")


async def _get_store(request: Request) -> AsyncIterator[CredentialStore]:
    async_session = getattr(request.app.state, "async_session", None)
    if async_session is None:
        raise HTTPException(status_code=503, detail="Credential store not initialised.")
    async with async_session() as session:
        yield CredentialStore(session)


def _get_service(request: Request, store: CredentialStore = Depends(_get_store)) -> TokenService:
    codec = getattr(request.app.state, "codec", None)
    if codec is None:
        raise HTTPException(status_code=503, detail="Envelope codec not initialised.")
    return TokenService(store, codec, migration_batch_size=request.app.state.config.migration_batch_size)


def _to_http(exc: Exception) -> HTTPException:
    """Collapse internal errors into the externally visible set."""
    if isinstance(exc, NotAccessible):
        return HTTPException(status_code=404, detail=NOT_ACCESSIBLE)
    if isinstance(exc, StoreUnavailable):
        return HTTPException(status_code=503, detail="Credential store unavailable")
    logger.error("[Credentials] %s: %s", exc.__class__.__name__, exc)
    return HTTPException(status_code=500, detail="Internal error")


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/credentials", status_code=201, response_model=ConnectAccountResponse)
async def connect_account(
    body: ConnectAccountRequest,
    tenant_id: str = Depends(_get_tenant),
    store: CredentialStore = Depends(_get_store),
):
    try:
        record = await store.create(
            owner_tenant_id=tenant_id,
            platform=body.platform,
            account_name=body.account_name,
            external_account_id=body.external_account_id,
        )
    except StoreUnavailable as exc:
        raise _to_http(exc)
    return ConnectAccountResponse(
        id=record.id,
        owner_tenant_id=record.owner_tenant_id,
        platform=record.platform,
        account_name=record.account_name,
        external_account_id=record.external_account_id,
        scheme_version=int(record.scheme_version),
    )


@router.put("/credentials/{record_id}/secrets", response_model=StoreSecretsResponse)
async def encrypt_and_store(
    record_id: str,
    body: StoreSecretsRequest,
    tenant_id: str = Depends(_get_tenant),
    service: TokenService = Depends(_get_service),
):
    try:
        await service.encrypt_and_store(tenant_id, record_id, body.access_token, body.refresh_token)
    except (NotAccessible, StoreUnavailable, EnvelopeError, EncryptionUnavailable) as exc:
        raise _to_http(exc)
    return StoreSecretsResponse()


@router.get("/credentials/{record_id}")
async def get_decrypted(
    record_id: str,
    tenant_id: str = Depends(_get_tenant),
    service: TokenService = Depends(_get_service),
):
    try:
        account = await service.get_decrypted(tenant_id, record_id)
    except (NotAccessible, StoreUnavailable, EnvelopeError, EncryptionUnavailable) as exc:
        raise _to_http(exc)
    return {"account": account.model_dump(mode="json")}


@router.post("/credentials/migrate", response_model=MigrateResponse)
async def migrate_existing(
    body: Optional[MigrateRequest] = None,
    tenant_id: str = Depends(_get_tenant),
    service: TokenService = Depends(_get_service),
):
    try:
        report = await service.migrate_existing(tenant_id, dry_run=bool(body and body.dry_run))
    except NotAccessible:
        raise HTTPException(status_code=403, detail="Admin access required")
    except StoreUnavailable as exc:
        raise _to_http(exc)
    return MigrateResponse(
        migrated=report.migrated_count,
        errors=report.error_count,
        skipped=report.skipped_count,
        dry_run=report.dry_run,
    )
