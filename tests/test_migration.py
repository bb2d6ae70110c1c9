"""Migration tests: v1/plaintext -> v2, idempotence, error isolation, admin gate."""

import pytest
from sqlalchemy import select

from tokenvault.db.models import ConnectedAccountModel
from tokenvault.exceptions import MigrationForbidden, NotAccessible
from tokenvault.service import TokenService
from tokenvault.types import REDACTED_SENTINEL, SchemeVersion

from conftest import ADMIN, TENANT_A, TENANT_B


async def _snapshot(session) -> dict:
    result = await session.execute(
        select(ConnectedAccountModel).execution_options(populate_existing=True)
    )
    return {
        row.id: (row.access_token, row.refresh_token, row.access_token_encrypted,
                 row.refresh_token_encrypted, row.encryption_version)
        for row in result.scalars().all()
    }


async def _v1_record(store, legacy_v1, owner=TENANT_A, access="abc123token", refresh=None):
    return await store.create(
        owner_tenant_id=owner, platform="facebook", account_name="legacy",
        access_token=REDACTED_SENTINEL,
        refresh_token=REDACTED_SENTINEL if refresh else None,
        access_token_encrypted=legacy_v1(access),
        refresh_token_encrypted=legacy_v1(refresh) if refresh else None,
        encryption_version=1,
    )


class TestMigrateExisting:
    async def test_v1_record_becomes_v2(self, service, store, legacy_v1):
        rec = await _v1_record(store, legacy_v1, access="abc123token", refresh="refresh-xyz")

        report = await service.migrate_existing(ADMIN)
        assert report.migrated_count == 1
        assert report.error_count == 0

        stored = await store.get(rec.id)
        assert stored.scheme_version == SchemeVersion.V2
        assert stored.access_secret_envelope.startswith("v2:")
        assert stored.refresh_secret_envelope.startswith("v2:")

        cred = await service.get_decrypted(TENANT_A, rec.id)
        assert cred.access_token == "abc123token"
        assert cred.refresh_token == "refresh-xyz"

    async def test_mixed_batch(self, service, store, legacy_v1):
        plain = await store.create(
            owner_tenant_id=TENANT_A, platform="facebook", account_name="plain",
            access_token="EAABplain", refresh_token="refresh-plain",
        )
        v1 = await _v1_record(store, legacy_v1, owner=TENANT_B, access="v1-access")
        current = await store.create(owner_tenant_id=TENANT_B, platform="instagram", account_name="new")
        await service.encrypt_and_store(TENANT_B, current.id, "already-v2")

        report = await service.migrate_existing(ADMIN)
        assert (report.migrated_count, report.error_count) == (2, 0)

        assert (await service.get_decrypted(TENANT_A, plain.id)).access_token == "EAABplain"
        assert (await service.get_decrypted(TENANT_A, plain.id)).refresh_token == "refresh-plain"
        assert (await service.get_decrypted(TENANT_B, v1.id)).access_token == "v1-access"
        assert (await service.get_decrypted(TENANT_B, current.id)).access_token == "already-v2"

        counts = await store.count_by_version()
        assert counts[SchemeVersion.V2] == 3
        assert counts[SchemeVersion.V1] == counts[SchemeVersion.PLAINTEXT] == 0

    async def test_plaintext_columns_redacted_after_migration(self, service, store, session):
        rec = await store.create(
            owner_tenant_id=TENANT_A, platform="facebook", account_name="plain", access_token="EAABplain",
        )
        await service.migrate_existing(ADMIN)
        after = (await _snapshot(session))[rec.id]
        assert after[0] == REDACTED_SENTINEL
        assert after[1] is None
        assert "EAABplain" not in after[2]

    async def test_second_run_is_noop(self, service, store, session, legacy_v1):
        for i in range(3):
            await _v1_record(store, legacy_v1, access=f"tok-{i}")
        first = await service.migrate_existing(ADMIN)
        assert first.migrated_count == 3

        before = await _snapshot(session)
        second = await service.migrate_existing(ADMIN)
        assert second.migrated_count == 0
        assert second.error_count == 0
        assert await _snapshot(session) == before

    async def test_empty_plaintext_migrates(self, service, store):
        rec = await store.create(owner_tenant_id=TENANT_A, platform="x", account_name="empty", access_token="")
        report = await service.migrate_existing(ADMIN)
        assert (report.migrated_count, report.error_count) == (1, 0)
        cred = await service.get_decrypted(TENANT_A, rec.id)
        assert cred.access_token == ""
        assert cred.scheme_version == SchemeVersion.V2

    async def test_fresh_envelopes_for_identical_plaintexts(self, service, store, legacy_v1):
        a = await _v1_record(store, legacy_v1, access="same-token")
        b = await _v1_record(store, legacy_v1, access="same-token")
        await service.migrate_existing(ADMIN)
        env_a = (await store.get(a.id)).access_secret_envelope
        env_b = (await store.get(b.id)).access_secret_envelope
        assert env_a != env_b


class TestAuthorization:
    @pytest.mark.parametrize("caller", [TENANT_A, TENANT_B, "nobody"])
    async def test_non_admin_changes_nothing(self, service, store, session, legacy_v1, caller):
        await _v1_record(store, legacy_v1)
        before = await _snapshot(session)
        with pytest.raises(MigrationForbidden):
            await service.migrate_existing(caller)
        assert await _snapshot(session) == before

    async def test_forbidden_is_not_accessible(self, service):
        with pytest.raises(NotAccessible):
            await service.migrate_existing(TENANT_A)


class TestErrorIsolation:
    async def test_bad_records_counted_batch_continues(self, service, store, session, codec, legacy_v1):
        good = [await _v1_record(store, legacy_v1, access=f"good-{i}") for i in range(3)]
        envelope = codec.encode("tamper-me")
        prefix, salt, nonce, data = envelope.split(":")
        data = ("B" if data[0] == "A" else "A") + data[1:]
        tampered = await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="tampered",
            access_token_encrypted=legacy_v1("fine-access"),
            refresh_token_encrypted=f"{prefix}:{salt}:{nonce}:{data}",
            encryption_version=1,
        )
        malformed = await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="malformed",
            access_token_encrypted="v1:AA==:Ayg=:extra", encryption_version=1,
        )
        bad_before = {k: v for k, v in (await _snapshot(session)).items() if k in (tampered.id, malformed.id)}

        report = await service.migrate_existing(ADMIN)
        assert report.migrated_count == 3
        assert report.error_count == 2

        for rec in good:
            assert (await store.get(rec.id)).scheme_version == SchemeVersion.V2
        after = await _snapshot(session)
        assert after[tampered.id] == bad_before[tampered.id]
        assert after[malformed.id] == bad_before[malformed.id]

    async def test_unknown_version_counted_batch_continues(self, service, store, session, legacy_v1):
        corrupt = await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="corrupt",
            access_token="EAABplain", encryption_version=-1,
        )
        good = [await _v1_record(store, legacy_v1, access=f"good-{i}") for i in range(3)]
        before = (await _snapshot(session))[corrupt.id]

        report = await service.migrate_existing(ADMIN)
        assert (report.migrated_count, report.error_count) == (3, 1)
        for rec in good:
            assert (await store.get(rec.id)).scheme_version == SchemeVersion.V2
        assert (await _snapshot(session))[corrupt.id] == before

    async def test_bad_refresh_leaves_access_untouched(self, service, store, session, legacy_v1):
        rec = await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="half",
            access_token_encrypted=legacy_v1("good-access"),
            refresh_token_encrypted="v1:not-base64*:AAAA",
            encryption_version=1,
        )
        before = (await _snapshot(session))[rec.id]
        report = await service.migrate_existing(ADMIN)
        assert report.error_count == 1
        assert (await _snapshot(session))[rec.id] == before

    async def test_redacted_without_ciphertext_is_an_error(self, service, store):
        await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="lost", access_token=REDACTED_SENTINEL,
        )
        report = await service.migrate_existing(ADMIN)
        assert report.error_count == 1
        assert report.migrated_count == 0

    async def test_errors_logged_without_secrets(self, service, store, legacy_v1, caplog):
        await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="malformed",
            access_token_encrypted="v1:AA==:Ayg=:extra", encryption_version=1,
        )
        await _v1_record(store, legacy_v1, access="do-not-log-me")
        caplog.set_level("INFO", logger="tokenvault.migration")
        await service.migrate_existing(ADMIN)
        text = caplog.text
        assert "MalformedEnvelope" in text
        assert "do-not-log-me" not in text


class TestDryRunAndConcurrency:
    async def test_dry_run_writes_nothing(self, service, store, session, legacy_v1):
        for i in range(3):
            await _v1_record(store, legacy_v1, access=f"tok-{i}")
        before = await _snapshot(session)
        report = await service.migrate_existing(ADMIN, dry_run=True)
        assert report.dry_run
        assert report.migrated_count == 3
        assert await _snapshot(session) == before

    async def test_lagging_version_column_is_skipped(self, service, store, codec):
        await store.create(
            owner_tenant_id=TENANT_A, platform="x", account_name="lagging",
            access_token_encrypted=codec.encode("current"), encryption_version=1,
        )
        report = await service.migrate_existing(ADMIN)
        assert (report.migrated_count, report.skipped_count, report.error_count) == (0, 1, 0)

    async def test_record_claimed_elsewhere_is_skipped(self, store, codec, legacy_v1):
        rec = await _v1_record(store, legacy_v1, access="contended")

        class RacingStore:
            """Lets another writer commit v2 right before our conditional write."""

            def __init__(self, inner):
                self._inner = inner

            def __getattr__(self, name):
                return getattr(self._inner, name)

            async def put_envelopes(self, record_id, access, refresh, version, expected_version=None):
                await self._inner.put_envelopes(record_id, codec.encode("winner"), None, version)
                return await self._inner.put_envelopes(
                    record_id, access, refresh, version, expected_version=expected_version,
                )

        racing = TokenService(RacingStore(store), codec, migration_batch_size=2)
        report = await racing.migrate_existing(ADMIN)
        assert report.skipped_count == 1
        assert report.migrated_count == 0
        cred = await racing.get_decrypted(TENANT_A, rec.id)
        assert cred.access_token == "winner"
