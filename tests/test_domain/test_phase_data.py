"""Tests for the per-phase payloads."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from account_escrow.domain.enums import Phase
from account_escrow.domain.phase_data import (
    CodeAttempt,
    EligibilityData,
    FinalVerificationData,
    PhaseData,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestMerge:
    def test_merge_creates_phase(self) -> None:
        data = PhaseData().merge(Phase.ELIGIBILITY, has_capability=True)
        assert data.eligibility == EligibilityData(has_capability=True)
        assert data.phases() == [Phase.ELIGIBILITY]

    def test_merge_never_overwrites_other_fields(self) -> None:
        data = PhaseData().merge(Phase.ELIGIBILITY, has_capability=True, confirmed_by="s")
        data = data.merge(Phase.ELIGIBILITY, confirmed_at=NOW)
        assert data.eligibility.has_capability is True
        assert data.eligibility.confirmed_by == "s"
        assert data.eligibility.confirmed_at == NOW

    def test_merge_leaves_other_phases(self) -> None:
        data = PhaseData().merge(Phase.ELIGIBILITY, has_capability=True)
        data = data.merge(Phase.PAYMENT, status="pending_admin_approval")
        assert data.eligibility.has_capability is True
        assert data.get(Phase.PAYMENT).status == "pending_admin_approval"

    def test_merge_is_persistent(self) -> None:
        original = PhaseData()
        original.merge(Phase.TRANSFER, new_email="a@b.co")
        assert original.transfer is None

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(TypeError):
            PhaseData().merge(Phase.PAYMENT, has_capability=True)


class TestRecords:
    def test_record_uses_camel_case_and_iso_dates(self) -> None:
        data = PhaseData().merge(Phase.FINAL_VERIFICATION, video_file_id="f1", uploaded_at=NOW)
        record = data.to_record()
        assert record == {
            "finalVerification": {
                "videoFileId": "f1",
                "videoDuration": None,
                "status": None,
                "uploadedAt": NOW.isoformat(),
                "reviewedBy": None,
                "reviewedAt": None,
                "rejectionReason": None,
                "rejections": 0,
            }
        }

    def test_round_trip(self) -> None:
        data = (
            PhaseData()
            .merge(Phase.ELIGIBILITY, has_capability=False, confirmed_at=NOW)
            .merge(Phase.BUYER_VERIFICATION, satisfied=False, issue="it is broken!")
            .merge(Phase.FINAL_VERIFICATION, rejections=2)
        )
        assert PhaseData.from_record(data.to_record()) == data

    def test_closed_code_rounds_round_trip(self) -> None:
        closed = CodeAttempt(code="AB12CD", submitted_at=NOW, status="rejected")
        data = PhaseData().merge(Phase.TRANSFER, attempts=(closed,))

        record = data.to_record()

        assert record["transfer"]["attempts"] == [
            {
                "code": "AB12CD",
                "requestedAt": None,
                "submittedAt": NOW.isoformat(),
                "status": "rejected",
                "reviewedBy": None,
                "rejectionReason": None,
                "closedAt": None,
            }
        ]
        assert PhaseData.from_record(record) == data

    def test_empty_record(self) -> None:
        assert PhaseData.from_record(None) == PhaseData()
        assert PhaseData().to_record() == {}

    def test_missing_keys_use_defaults(self) -> None:
        data = PhaseData.from_record({"finalVerification": {"status": "approved"}})
        assert data.final_verification == FinalVerificationData(status="approved")
