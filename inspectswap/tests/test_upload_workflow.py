"""
Upload Workflow Tests.

Report + reward are one atomic unit; bounty fulfilment is best-effort.
"""

import hashlib

import httpx
import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from inspectswap.app.core.config import settings
from inspectswap.app.core.exceptions import (
    DuplicateUploadError,
    InvalidUploadError,
    NotFoundError,
    NotOwnerError,
    StorageError,
)
from inspectswap.app.core.reliability import CircuitBreaker
from inspectswap.app.domain.bounties.bounty_matcher import BountyMatcher
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.marketplace.bounty_service import BountyService
from inspectswap.app.domain.marketplace.upload_service import (
    UploadService,
    compute_content_hash,
    derive_property_address,
    validate_upload,
    validate_upload_size,
)
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.models.audit_log import AuditLog
from inspectswap.app.models.enums import BountyStatus, LedgerEntryKind
from inspectswap.app.models.report import Report
from inspectswap.app.services.analysis import (
    AnalysisProvider,
    ChatCompletionAnalysisProvider,
    fallback_analysis,
)
from inspectswap.app.services.audit import get_audit_trail, AuditAction


def test_compute_content_hash_is_sha256_hex():
    assert compute_content_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("742_Evergreen_Terrace.pdf", "742 Evergreen Terrace"),
        ("123_Main_St.PDF", "123 Main St"),
        (".pdf", "Unknown Address"),
        ("", "Unknown Address"),
    ],
)
def test_derive_property_address(file_name, expected):
    assert derive_property_address(file_name) == expected


def test_validate_upload_rejects_bad_files(make_pdf, mocker):
    with pytest.raises(InvalidUploadError):
        validate_upload("notes.txt", "text/plain", b"hello")

    with pytest.raises(InvalidUploadError):
        validate_upload("empty.pdf", "application/pdf", b"")

    mocker.patch.object(settings, "max_upload_size_mb", 0)
    with pytest.raises(InvalidUploadError):
        validate_upload("big.pdf", "application/pdf", make_pdf("big"))


def test_validate_upload_size(mocker):
    mocker.patch.object(settings, "max_upload_size_mb", 1)

    validate_upload_size(None)
    validate_upload_size(1024 * 1024)
    with pytest.raises(InvalidUploadError):
        validate_upload_size(1024 * 1024 + 1)


def test_validate_upload_accepts_pdf_by_extension_or_type(make_pdf):
    validate_upload("report.pdf", "application/octet-stream", make_pdf("a"))
    validate_upload("report", "application/pdf", make_pdf("b"))


@pytest.mark.asyncio
async def test_upload_pays_reward_and_registers_report(db_session, analysis_provider, fund, balance_of, make_pdf):
    await fund("alice", 50)

    result = await UploadService.upload_report(
        db_session,
        owner_user_id="alice",
        content=make_pdf("alice-1"),
        file_name="123_Oak_Ave.pdf",
        analysis_provider=analysis_provider,
    )

    assert result.credits_earned == settings.upload_reward
    assert result.bounty is None
    assert result.warnings == []
    assert result.report.property_address == "123 Oak Ave"
    assert result.report.estimated_credit == 4200
    assert await balance_of("alice") == 60

    entries = await LedgerStore.list_entries(db_session, "alice")
    assert entries[0].kind == LedgerEntryKind.UPLOAD
    assert entries[0].amount == 10
    assert entries[0].report_id == result.report.id

    trail = await get_audit_trail(db_session, actor_id="alice", action=AuditAction.REPORT_UPLOADED)
    assert trail[0].meta_data["report_id"] == result.report.id


@pytest.mark.asyncio
async def test_duplicate_bytes_rejected_for_any_user(db_session, analysis_provider, balance_of, make_pdf):
    content = make_pdf("same-bytes")
    await UploadService.upload_report(
        db_session, owner_user_id="alice", content=content, file_name="a.pdf",
        analysis_provider=analysis_provider,
    )

    with pytest.raises(DuplicateUploadError):
        await UploadService.upload_report(
            db_session, owner_user_id="bob", content=content, file_name="b.pdf",
            analysis_provider=analysis_provider,
        )

    assert analysis_provider.calls == ["a.pdf"]
    assert await balance_of("bob") == 0
    assert await db_session.scalar(select(func.count(Report.id))) == 1


@pytest.mark.asyncio
async def test_reward_failure_rolls_back_report(db_session, analysis_provider, mocker, make_pdf):
    content = make_pdf("doomed")
    mocker.patch.object(
        LedgerStore,
        "record_entry",
        new=AsyncMock(side_effect=OperationalError("INSERT INTO ledger_entries", {}, Exception("disk I/O error"))),
    )

    with pytest.raises(StorageError):
        await UploadService.upload_report(
            db_session, owner_user_id="alice", content=content, file_name="doomed.pdf",
            analysis_provider=analysis_provider,
        )

    assert await ReportRegistry.find_by_hash(db_session, compute_content_hash(content)) is None
    assert await db_session.scalar(select(func.count(AuditLog.id))) == 0


@pytest.mark.asyncio
async def test_upload_fulfils_matching_bounty(db_session, analysis_provider, fund, balance_of, make_pdf):
    await fund("bob", 50)
    bounty = await BountyService.create_bounty(db_session, "bob", "123 Main St", staked_credits=5)
    assert await balance_of("bob") == 45

    result = await UploadService.upload_report(
        db_session,
        owner_user_id="carol",
        content=make_pdf("carol-1"),
        file_name="listing.pdf",
        analysis_provider=analysis_provider,
        property_address="123 Main St Apt 2",
    )

    assert result.bounty is not None
    assert result.bounty.id == bounty.id
    assert result.bounty.status == BountyStatus.FULFILLED
    assert result.bounty.fulfilled_report_id == result.report.id
    assert result.bounty_credits_earned == 5
    assert await balance_of("carol") == 15
    assert await balance_of("bob") == 45


@pytest.mark.asyncio
async def test_own_bounty_is_not_fulfilled_by_own_upload(db_session, analysis_provider, fund, make_pdf):
    await fund("alice", 50)
    bounty = await BountyService.create_bounty(db_session, "alice", "1 Elm St")
    bounty_id = bounty.id

    result = await UploadService.upload_report(
        db_session,
        owner_user_id="alice",
        content=make_pdf("alice-elm"),
        file_name="1_Elm_St.pdf",
        analysis_provider=analysis_provider,
    )

    assert result.bounty is None
    assert result.warnings == []
    assert (await BountyMatcher.get(db_session, bounty_id)).status == BountyStatus.OPEN


@pytest.mark.asyncio
async def test_bounty_failure_is_a_soft_warning(db_session, analysis_provider, fund, balance_of, mocker, make_pdf):
    await fund("bob", 50)
    bounty = await BountyService.create_bounty(db_session, "bob", "9 Bay Rd")
    bounty_id = bounty.id
    mocker.patch.object(
        BountyMatcher,
        "fulfill",
        new=AsyncMock(side_effect=StorageError("Transaction failed and was rolled back")),
    )

    result = await UploadService.upload_report(
        db_session,
        owner_user_id="carol",
        content=make_pdf("carol-bay"),
        file_name="9_Bay_Rd.pdf",
        analysis_provider=analysis_provider,
    )

    assert result.bounty is None
    assert len(result.warnings) == 1
    assert "Bounty fulfilment skipped" in result.warnings[0]
    assert await balance_of("carol") == 10
    assert await ReportRegistry.get(db_session, result.report.id) is not None
    assert (await BountyMatcher.get(db_session, bounty_id)).status == BountyStatus.OPEN


@pytest.mark.asyncio
async def test_no_transaction_held_during_analysis(db_session, balance_of, make_pdf):
    seen = []

    class RecordingProvider(AnalysisProvider):
        async def analyze(self, file_name, content):
            seen.append(db_session.in_transaction())
            return fallback_analysis()

    await UploadService.upload_report(
        db_session,
        owner_user_id="alice",
        content=make_pdf("idle"),
        file_name="idle.pdf",
        analysis_provider=RecordingProvider(),
    )

    assert seen == [False]
    assert await balance_of("alice") == 10


@pytest.mark.asyncio
async def test_analysis_outage_still_pays_reward(db_session, balance_of, make_pdf):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "upstream down"})

    provider = ChatCompletionAnalysisProvider(
        api_key="test-key",
        breaker=CircuitBreaker(failure_threshold=3, reset_timeout=30),
        transport=httpx.MockTransport(handler),
    )

    result = await UploadService.upload_report(
        db_session,
        owner_user_id="alice",
        content=make_pdf("outage"),
        file_name="outage.pdf",
        analysis_provider=provider,
    )

    assert result.analysis == fallback_analysis()
    assert result.report.estimated_credit == 3000
    assert await balance_of("alice") == 10


@pytest.mark.asyncio
async def test_delete_report_owner_only_and_keeps_ledger(db_session, analysis_provider, balance_of, make_pdf):
    result = await UploadService.upload_report(
        db_session, owner_user_id="alice", content=make_pdf("to-delete"), file_name="x.pdf",
        analysis_provider=analysis_provider,
    )
    report_id = result.report.id

    with pytest.raises(NotOwnerError):
        await UploadService.delete_report(db_session, "bob", report_id)

    await UploadService.delete_report(db_session, "alice", report_id)

    assert await ReportRegistry.get(db_session, report_id) is None
    assert await balance_of("alice") == 10

    with pytest.raises(NotFoundError):
        await UploadService.delete_report(db_session, "alice", report_id)
