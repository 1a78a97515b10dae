"""Checklist flag semantics and the percent-complete rule."""
from datetime import date, timedelta

import pytest

from app.core.exceptions import ValidationError
from app.services import progress
from app.services.progress import SupplierStepPayload


def test_new_progress_starts_clear():
    agency = progress.new_agency_progress()
    for flag in progress.AGENCY_FLAGS:
        assert getattr(agency, flag) is False
        assert getattr(agency, progress.date_field(flag)) is None

    supplier = progress.new_supplier_progress()
    for flag in progress.SUPPLIER_FLAGS:
        assert getattr(supplier, flag) is False


def test_setting_flag_stamps_date_and_undo_clears_it(now):
    agency = progress.new_agency_progress()

    assert progress.apply_agency_flag(agency, "client_paid", True, now) is True
    assert agency.client_paid is True
    assert agency.client_paid_date == now

    assert progress.apply_agency_flag(agency, "client_paid", False, now + timedelta(hours=1)) is True
    assert agency.client_paid is False
    assert agency.client_paid_date is None


def test_repeating_a_set_keeps_original_date(now):
    agency = progress.new_agency_progress()
    progress.apply_agency_flag(agency, "guidelines_approved", True, now)

    later = now + timedelta(days=2)
    assert progress.apply_agency_flag(agency, "guidelines_approved", True, later) is False
    assert agency.guidelines_approved_date == now


def test_unknown_flag_is_rejected(now):
    with pytest.raises(ValidationError):
        progress.apply_agency_flag(progress.new_agency_progress(), "client_happy", True, now)
    with pytest.raises(ValidationError):
        progress.apply_supplier_flag(progress.new_supplier_progress(), "client_paid", True, now)


@pytest.mark.parametrize("completed, expected", [
    (0, 0),
    (1, 13),   # 12.5 rounds up
    (3, 38),   # 37.5 rounds up
    (4, 50),
    (8, 100),
])
def test_percent_complete_counts_headline_steps(completed, expected, now):
    agency = progress.new_agency_progress()
    for flag in progress.PERCENT_FLAGS[:completed]:
        progress.apply_agency_flag(agency, flag, True, now)
    assert progress.percent_complete(agency) == expected


def test_percent_complete_ignores_non_headline_flags(now):
    agency = progress.new_agency_progress()
    for flag in ("agreement_signed", "commission_set", "briefing_completed"):
        progress.apply_agency_flag(agency, flag, True, now)
    assert progress.percent_complete(agency) == 0


class TestSupplierPayloads:

    def test_affiliate_sheet_needs_google_sheet_url(self, now):
        payload = SupplierStepPayload(
            affiliate_sheet_url="https://example.com/list.xlsx",
            link_accessible=True, count_matches=True, all_columns_complete=True, affiliates_suitable=True,
        )
        with pytest.raises(ValidationError, match="Google Sheets"):
            progress.apply_supplier_flag(progress.new_supplier_progress(), "affiliates_submitted", True, now, payload)

    def test_affiliate_sheet_needs_every_checklist_item(self, now):
        payload = SupplierStepPayload(
            affiliate_sheet_url="https://docs.google.com/spreadsheets/d/abc",
            link_accessible=True, count_matches=False, all_columns_complete=True, affiliates_suitable=True,
        )
        with pytest.raises(ValidationError) as exc_info:
            progress.apply_supplier_flag(progress.new_supplier_progress(), "affiliates_submitted", True, now, payload)
        assert exc_info.value.details["missing"] == ["count_matches"]

    def test_production_needs_both_dates(self, now):
        payload = SupplierStepPayload(video_start_date=date(2026, 10, 6))
        with pytest.raises(ValidationError):
            progress.apply_supplier_flag(progress.new_supplier_progress(), "production_started", True, now, payload)

    def test_report_needs_url(self, now):
        with pytest.raises(ValidationError):
            progress.apply_supplier_flag(progress.new_supplier_progress(), "report_submitted", True, now, None)

    def test_undo_keeps_submitted_data(self, now):
        supplier = progress.new_supplier_progress()
        payload = SupplierStepPayload(report_url="https://drive.example.com/report.pdf")
        progress.apply_supplier_flag(supplier, "report_submitted", True, now, payload)

        assert progress.apply_supplier_flag(supplier, "report_submitted", False, now) is True
        assert supplier.report_submitted is False
        assert supplier.report_submitted_date is None
        assert supplier.report_url == "https://drive.example.com/report.pdf"

    def test_steps_without_payload_accept_none(self, now):
        supplier = progress.new_supplier_progress()
        assert progress.apply_supplier_flag(supplier, "briefing_completed", True, now) is True
        assert supplier.briefing_completed_date == now
