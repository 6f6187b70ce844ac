"""Unit tests for ChangeSetApplicator."""

import pytest

from rowguard.domain.entities import Index, OperationScope, Rule
from rowguard.domain.exceptions import MissingCollectionError, PartialChangeSetApplicationError
from rowguard.infrastructure.changesets import ChangeSetApplicator, ChangeSetBuilder
from rowguard.infrastructure.persistence.repositories import ChangeSetRepository


@pytest.fixture
def kv_catalog(catalog):
    catalog.create_collection("app_kv", ("id", "key", "value"))
    catalog.create_index(Index("idx_app_kv_key", "app_kv", ("key",)))
    return catalog


def hardening(*extra_collections):
    builder = (
        ChangeSetBuilder("20250101000000_test", "Harden app_kv")
        .drop_index("idx_app_kv_key")
        .enable_access_control("app_kv")
        .create_rule("app_kv", Rule("read", OperationScope.SELECT, using="true"))
    )
    for collection in extra_collections:
        builder.enable_access_control(collection)
    return builder.build()


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_records_ledger(self, kv_catalog, db_session):
        result = await ChangeSetApplicator(kv_catalog, db_session).apply(hardening())

        assert result.status == "applied"
        assert result.applied_steps == 3
        assert result.changed_steps == [
            "drop index idx_app_kv_key",
            "enable access control on app_kv",
            "create SELECT rule 'read' on app_kv",
        ]
        entry = await ChangeSetRepository(db_session, kv_catalog.catalog_id).get("20250101000000_test")
        assert entry.status == "applied"
        assert entry.checksum == hardening().checksum

    @pytest.mark.asyncio
    async def test_second_apply_skips(self, kv_catalog, db_session):
        applicator = ChangeSetApplicator(kv_catalog, db_session)
        await applicator.apply(hardening())

        result = await applicator.apply(hardening())

        assert result.skipped
        assert result.applied_steps == 0

    @pytest.mark.asyncio
    async def test_already_converged_catalog_changes_nothing(self, kv_catalog, db_session):
        await ChangeSetApplicator(kv_catalog, db_session).apply(hardening())
        repository = ChangeSetRepository(db_session, kv_catalog.catalog_id)
        entry = await repository.get("20250101000000_test")
        await db_session.delete(entry)
        await db_session.commit()

        result = await ChangeSetApplicator(kv_catalog, db_session).apply(hardening())

        assert result.status == "applied"
        assert result.changed_steps == []


class TestPartialApplication:
    @pytest.mark.asyncio
    async def test_failure_reports_progress_without_rollback(self, kv_catalog, db_session):
        with pytest.raises(PartialChangeSetApplicationError) as exc_info:
            await ChangeSetApplicator(kv_catalog, db_session).apply(hardening("missing"))

        error = exc_info.value
        assert error.applied_steps == 3
        assert error.total_steps == 4
        assert error.failed_operation == "enable access control on missing"
        assert isinstance(error.__cause__, MissingCollectionError)

        # Applied steps stay applied
        assert "idx_app_kv_key" not in kv_catalog.indexes
        assert kv_catalog.get_collection("app_kv").access_control_enabled

        entry = await ChangeSetRepository(db_session, kv_catalog.catalog_id).get("20250101000000_test")
        assert entry.status == "partial"
        assert entry.applied_steps == 3
        assert entry.error.startswith("MissingCollectionError:")

    @pytest.mark.asyncio
    async def test_partial_change_set_resumes(self, kv_catalog, db_session):
        applicator = ChangeSetApplicator(kv_catalog, db_session)
        with pytest.raises(PartialChangeSetApplicationError):
            await applicator.apply(hardening("missing"))

        kv_catalog.create_collection("missing")
        result = await applicator.apply(hardening("missing"))

        assert result.status == "applied"
        assert result.changed_steps == ["enable access control on missing"]
        assert await ChangeSetRepository(db_session, kv_catalog.catalog_id).is_applied("20250101000000_test")
