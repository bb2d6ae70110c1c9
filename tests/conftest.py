"""Test fixtures: codec, in-memory store, service, legacy v1 envelope builder.

All tests should use these fixtures for consistency.
"""

import base64
import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tokenvault.auth.gate import OwnershipGate
from tokenvault.config import TokenVaultConfig
from tokenvault.crypto.codec import EnvelopeCodec
from tokenvault.db.models import Base
from tokenvault.db.repository import CredentialStore
from tokenvault.service import TokenService
from tokenvault.types import TenantRole

MASTER_SECRET = "test-master-secret-0123456789abcdef"
JWT_SECRET = "test-jwt-secret"
# Low round count keeps the suite fast; one test exercises the default.
TEST_KDF_ITERATIONS = 1_000

TENANT_A = "tenant-alpha-001"
TENANT_B = "tenant-beta-002"
ADMIN = "tenant-admin-000"


@pytest.fixture
def config(tmp_path):
    """Test configuration with safe defaults."""
    return TokenVaultConfig(
        debug=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tokenvault-test.db'}",
        token_encryption_key=MASTER_SECRET,
        kdf_iterations=TEST_KDF_ITERATIONS,
        jwt_secret=JWT_SECRET,
        migration_batch_size=2,
    )


@pytest.fixture
def codec() -> EnvelopeCodec:
    return EnvelopeCodec(MASTER_SECRET, kdf_iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def legacy_v1():
    """Build v1 envelopes the way the retired writer did.

    The library deliberately has no v1 encoder; this is the only place one
    exists.
    """
    def _make(plaintext: str, master_secret: str = MASTER_SECRET, iv: bytes = None) -> str:
        iv_text = base64.b64encode(iv if iv is not None else os.urandom(12)).decode()
        key = bytearray(32)
        for i, byte in enumerate((master_secret + iv_text).encode()):
            key[i % 32] ^= byte
        data = bytes(b ^ key[i % 32] for i, b in enumerate(plaintext.encode()))
        return f"v1:{iv_text}:{base64.b64encode(data).decode()}"
    return _make


# ── Persistence ───────────────────────────────────────────────────────────────

@pytest.fixture
async def session():
    """In-memory SQLite async session with schema created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


@pytest.fixture
async def store(session) -> CredentialStore:
    s = CredentialStore(session)
    await s.set_role(ADMIN, TenantRole.ADMIN)
    await s.set_role(TENANT_A, TenantRole.USER)
    return s


@pytest.fixture
def gate(store) -> OwnershipGate:
    return OwnershipGate(store)


@pytest.fixture
def service(store, codec) -> TokenService:
    return TokenService(store, codec, migration_batch_size=2)


@pytest.fixture
async def record_a(store):
    """A freshly connected account owned by TENANT_A, no secrets yet."""
    return await store.create(owner_tenant_id=TENANT_A, platform="facebook", account_name="Alpha Page")


@pytest.fixture
async def record_b(store):
    return await store.create(owner_tenant_id=TENANT_B, platform="instagram", account_name="Beta Shop")
