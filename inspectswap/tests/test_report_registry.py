"""
Report Registry Tests.
"""

import pytest

from inspectswap.app.core.exceptions import DuplicateContentError
from inspectswap.app.db.transaction import ledger_transaction
from inspectswap.app.domain.reports.report_registry import ReportRegistry


async def _create(db, owner, address, content_hash, analysis=None):
    async with ledger_transaction(db):
        return await ReportRegistry.create(
            db,
            owner_user_id=owner,
            property_address=address,
            content_hash=content_hash,
            file_name=f"{content_hash}.pdf",
            file_size=1024,
            analysis=analysis,
        )


@pytest.mark.asyncio
async def test_create_copies_analysis_display_fields(db_session):
    analysis = {
        "majorDefects": ["Roof leak"],
        "summaryFindings": "Needs roof work.",
        "negotiationPoints": ["Ask for credit"],
        "estimatedCredit": 2500,
        "openingStatement": "Hello",
    }
    report = await _create(db_session, "alice", "12 Oak Ave", "a" * 64, analysis)

    assert report.id is not None
    assert report.download_count == 0
    assert report.is_public is True
    assert report.major_defects == ["Roof leak"]
    assert report.estimated_credit == 2500
    assert report.analysis["openingStatement"] == "Hello"
    assert report.created_at is not None


@pytest.mark.asyncio
async def test_find_by_hash(db_session):
    report = await _create(db_session, "alice", "12 Oak Ave", "b" * 64)

    found = await ReportRegistry.find_by_hash(db_session, "b" * 64)
    assert found.id == report.id
    assert await ReportRegistry.find_by_hash(db_session, "c" * 64) is None


@pytest.mark.asyncio
async def test_duplicate_hash_rejected_across_users(db_session):
    await _create(db_session, "alice", "12 Oak Ave", "d" * 64)

    with pytest.raises(DuplicateContentError):
        await _create(db_session, "bob", "99 Elm St", "d" * 64)

    assert len(await ReportRegistry.search(db_session)) == 1


@pytest.mark.asyncio
async def test_increment_download_count(db_session):
    report = await _create(db_session, "alice", "12 Oak Ave", "e" * 64)

    async with ledger_transaction(db_session):
        await ReportRegistry.increment_download_count(db_session, report.id)
        await ReportRegistry.increment_download_count(db_session, report.id)

    refreshed = await ReportRegistry.get(db_session, report.id)
    assert refreshed.download_count == 2


@pytest.mark.asyncio
async def test_search_is_case_insensitive_substring(db_session):
    await _create(db_session, "alice", "123 Main St", "1" * 64)
    await _create(db_session, "bob", "77 Harbor Rd", "2" * 64)
    await _create(db_session, "carol", "5 MAIN Street", "3" * 64)

    results = await ReportRegistry.search(db_session, "main")
    assert sorted(r.property_address for r in results) == ["123 Main St", "5 MAIN Street"]

    assert len(await ReportRegistry.search(db_session)) == 3
    assert await ReportRegistry.search(db_session, "100%") == []


@pytest.mark.asyncio
async def test_list_by_owner_and_get_many(db_session):
    first = await _create(db_session, "alice", "1 First St", "4" * 64)
    second = await _create(db_session, "alice", "2 Second St", "5" * 64)
    await _create(db_session, "bob", "3 Third St", "6" * 64)

    owned = await ReportRegistry.list_by_owner(db_session, "alice")
    assert [r.id for r in owned] == [second.id, first.id]

    many = await ReportRegistry.get_many(db_session, [second.id, 9999, first.id])
    assert [r.id for r in many] == [second.id, first.id]
    assert await ReportRegistry.get_many(db_session, []) == []


@pytest.mark.asyncio
async def test_delete(db_session):
    report = await _create(db_session, "alice", "1 First St", "7" * 64)

    async with ledger_transaction(db_session):
        await ReportRegistry.delete(db_session, report.id)

    assert await ReportRegistry.get(db_session, report.id) is None
