"""
Download, Bounty and Credit Workflow Tests.
"""

import pytest
from sqlalchemy import select, func

from inspectswap.app.core.exceptions import (
    InsufficientCreditsError,
    InvalidStakeError,
    NotFoundError,
    NotOpenError,
)
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.marketplace.bounty_service import BountyService
from inspectswap.app.domain.marketplace.credit_service import CreditService
from inspectswap.app.domain.marketplace.download_service import DownloadService
from inspectswap.app.domain.marketplace.upload_service import UploadService
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.models.download import Download
from inspectswap.app.models.enums import BountyStatus, LedgerEntryKind
from inspectswap.app.services.audit import get_audit_trail, AuditAction


@pytest.fixture
def upload(db_session, analysis_provider, make_pdf):
    async def _upload(owner: str, marker: str, address: str = None):
        result = await UploadService.upload_report(
            db_session,
            owner_user_id=owner,
            content=make_pdf(marker),
            file_name=f"{marker}.pdf",
            analysis_provider=analysis_provider,
            property_address=address,
        )
        return result.report.id
    return _upload


@pytest.mark.asyncio
async def test_download_charges_once(db_session, upload, fund, balance_of):
    report_id = await upload("alice", "r1")
    await fund("bob", 20)

    first = await DownloadService.download_report(db_session, "bob", report_id)
    assert first.charged is True
    assert first.credits_spent == 5
    assert first.report.download_count == 1
    assert await balance_of("bob") == 15

    second = await DownloadService.download_report(db_session, "bob", report_id)
    assert second.charged is False
    assert second.message == "Already downloaded"
    assert await balance_of("bob") == 15

    assert (await ReportRegistry.get(db_session, report_id)).download_count == 1
    rows = await db_session.scalar(select(func.count(Download.id)))
    assert rows == 1

    entries = await LedgerStore.list_entries(db_session, "bob")
    assert (entries[0].amount, entries[0].kind, entries[0].report_id) == (-5, LedgerEntryKind.DOWNLOAD, report_id)

    trail = await get_audit_trail(db_session, actor_id="bob", action=AuditAction.REPORT_DOWNLOADED)
    assert len(trail) == 1


@pytest.mark.asyncio
async def test_owner_downloads_free(db_session, upload, balance_of):
    report_id = await upload("alice", "r2")

    result = await DownloadService.download_report(db_session, "alice", report_id)

    assert result.charged is False
    assert result.message == "You own this report"
    assert await balance_of("alice") == 10


@pytest.mark.asyncio
async def test_insufficient_credits_writes_nothing(db_session, upload, fund, balance_of):
    report_id = await upload("alice", "r3")
    await fund("dave", 4)

    with pytest.raises(InsufficientCreditsError) as exc_info:
        await DownloadService.download_report(db_session, "dave", report_id)

    assert exc_info.value.details["balance"] == 4
    assert await balance_of("dave") == 4
    assert await DownloadService.has_downloaded(db_session, "dave", report_id) is False
    assert (await ReportRegistry.get(db_session, report_id)).download_count == 0


@pytest.mark.asyncio
async def test_download_unknown_report(db_session, fund):
    await fund("bob", 20)
    with pytest.raises(NotFoundError):
        await DownloadService.download_report(db_session, "bob", 424242)


@pytest.mark.asyncio
async def test_my_reports_skips_deleted(db_session, upload, fund):
    kept = await upload("alice", "kept")
    doomed = await upload("alice", "doomed")
    own = await upload("bob", "own")
    await fund("bob", 20)

    await DownloadService.download_report(db_session, "bob", kept)
    await DownloadService.download_report(db_session, "bob", doomed)
    await UploadService.delete_report(db_session, "alice", doomed)

    library = await DownloadService.my_reports(db_session, "bob")
    assert [r.id for r in library.uploaded] == [own]
    assert [r.id for r in library.downloaded] == [kept]


@pytest.mark.asyncio
async def test_create_bounty_debits_stake(db_session, fund, balance_of):
    await fund("bob", 50)

    bounty = await BountyService.create_bounty(db_session, "bob", "  123 Main St  ")

    assert bounty.status == BountyStatus.OPEN
    assert bounty.property_address == "123 Main St"
    assert bounty.staked_credits == 5
    assert await balance_of("bob") == 45

    entries = await LedgerStore.list_entries(db_session, "bob")
    assert (entries[0].amount, entries[0].kind, entries[0].bounty_id) == (-5, LedgerEntryKind.BOUNTY_STAKE, bounty.id)


@pytest.mark.asyncio
async def test_create_bounty_validation(db_session, fund, balance_of):
    await fund("bob", 3)

    with pytest.raises(InvalidStakeError):
        await BountyService.create_bounty(db_session, "bob", "   ")

    with pytest.raises(InvalidStakeError):
        await BountyService.create_bounty(db_session, "bob", "1 A St", staked_credits=2)

    with pytest.raises(InsufficientCreditsError):
        await BountyService.create_bounty(db_session, "bob", "1 A St", staked_credits=5)

    assert await balance_of("bob") == 3
    mine, _ = await BountyService.list_bounties(db_session, "bob")
    assert mine == []


@pytest.mark.asyncio
async def test_cancel_bounty_refunds_stake(db_session, fund, balance_of):
    # Balance 20 -> stake 8 -> 12 -> cancel -> 20
    await fund("erin", 20)
    bounty = await BountyService.create_bounty(db_session, "erin", "8 Pine Rd", staked_credits=8)
    bounty_id = bounty.id
    assert await balance_of("erin") == 12

    cancelled = await BountyService.cancel_bounty(db_session, "erin", bounty_id)
    assert cancelled.status == BountyStatus.CANCELLED
    assert await balance_of("erin") == 20

    with pytest.raises(NotOpenError):
        await BountyService.cancel_bounty(db_session, "erin", bounty_id)

    assert await balance_of("erin") == 20
    assert len(await LedgerStore.list_entries(db_session, "erin")) == 3


@pytest.mark.asyncio
async def test_signup_bonus_granted_once(db_session, balance_of):
    granted, amount = await CreditService.claim_signup_bonus(db_session, "newbie")
    assert (granted, amount) == (True, 50)

    granted, amount = await CreditService.claim_signup_bonus(db_session, "newbie")
    assert (granted, amount) == (False, 0)

    assert await balance_of("newbie") == 50


@pytest.mark.asyncio
async def test_credit_summary_and_dashboard(db_session, upload, fund):
    await fund("bob", 50)
    report_id = await upload("alice", "dash")
    await upload("bob", "bob-own")
    await DownloadService.download_report(db_session, "bob", report_id)

    summary = await CreditService.credit_summary(db_session, "bob")
    assert summary.balance == 55
    assert summary.total_earned == 60
    assert summary.total_spent == 5
    assert summary.balance == summary.total_earned - summary.total_spent
    assert len(summary.transactions) == 3

    dashboard = await CreditService.dashboard(db_session, "bob")
    assert dashboard.credit_balance == 55
    assert dashboard.total_reports == 1
    assert dashboard.total_downloads == 1
    assert len(dashboard.recent_reports) == 1
    assert dashboard.credits_earned == 60
    assert dashboard.credits_spent == 5
