"""Pydantic models for API request/response."""

from pydantic import BaseModel, Field
from typing import Optional


# ── Requests ──

class ConnectAccountRequest(BaseModel):
    platform: str = Field(..., min_length=1, max_length=64)      # "facebook", "instagram", ...
    account_name: str = Field(default="", max_length=255)
    external_account_id: Optional[str] = Field(default=None, max_length=255)


class StoreSecretsRequest(BaseModel):
    access_token: str = Field(..., min_length=1, max_length=8192)
    refresh_token: Optional[str] = Field(default=None, max_length=8192)


class MigrateRequest(BaseModel):
    dry_run: bool = False


# ── Responses ──

class ConnectAccountResponse(BaseModel):
    id: str
    owner_tenant_id: str
    platform: str
    account_name: str
    external_account_id: Optional[str] = None
    scheme_version: int


class StoreSecretsResponse(BaseModel):
    success: bool = True


class MigrateResponse(BaseModel):
    success: bool = True
    migrated: int
    errors: int
    skipped: int
    dry_run: bool = False


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict[str, bool]
