"""ORM models.

Tables: connected_accounts, tenant_roles
``connected_accounts`` keeps the legacy plaintext token columns next to the
encrypted ones so that rows from before encryption can be migrated in place.
"""

from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from sqlalchemy.orm import DeclarativeBase
from datetime import datetime, timezone
import uuid


class Base(DeclarativeBase):
    pass


class ConnectedAccountModel(Base):
    __tablename__ = "connected_accounts"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_tenant_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False, default="")
    account_name = Column(String, nullable=False, default="")
    external_account_id = Column(String, nullable=True)
    access_token = Column(Text, nullable=True)              # legacy plaintext or ***ENCRYPTED***
    refresh_token = Column(Text, nullable=True)
    access_token_encrypted = Column(Text, nullable=True)    # envelope string
    refresh_token_encrypted = Column(Text, nullable=True)
    encryption_version = Column(Integer, nullable=True)     # NULL = never encrypted
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_connected_account_version", "encryption_version"),
        Index("ix_connected_account_owner_platform", "owner_tenant_id", "platform"),
    )


class TenantRoleModel(Base):
    __tablename__ = "tenant_roles"
    tenant_id = Column(String, primary_key=True)
    role = Column(String, nullable=False, default="user")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
