"""Tests for the Google Sheets lead client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from sms_receptionist.errors import LeadNotFoundError
from sms_receptionist.models import LEAD_COLUMNS, LeadRecord
from sms_receptionist.services.sheets_client import SheetsClient

SHEET_ID = "sheet-123"


def _client() -> tuple[SheetsClient, MagicMock]:
    values = MagicMock()
    api = MagicMock()
    api.spreadsheets.return_value.values.return_value = values
    return SheetsClient(spreadsheet_id=SHEET_ID, sheet_name="Leads", api=api), values


def _row(name: str, phone: str, status: str = "new") -> list[str]:
    return LeadRecord(
        timestamp="2026-03-02T09:00:00+00:00",
        customer_name=name,
        phone=phone,
        source="sms",
        status=status,
    ).to_row()


# ── Tests: append_lead ───────────────────────────────────────────────


class TestAppendLead:
    def test_appends_row_in_column_order(self):
        client, values = _client()
        values.append.return_value.execute.return_value = {}
        lead = LeadRecord(
            timestamp="2026-03-02T09:00:00+00:00",
            customer_name="Jane",
            phone="+15551234567",
            email="jane@example.com",
            service_type="Plumbing",
            source="sms",
            appointment_id="evt-1",
        )

        client.append_lead(lead)

        kwargs = values.append.call_args.kwargs
        assert kwargs["spreadsheetId"] == SHEET_ID
        assert kwargs["range"] == "Leads!A:K"
        assert kwargs["valueInputOption"] == "RAW"
        row = kwargs["body"]["values"][0]
        assert len(row) == len(LEAD_COLUMNS)
        assert row[1:5] == ["Jane", "+15551234567", "jane@example.com", "Plumbing"]
        assert row[9] == "evt-1"
        assert row[10] == "new"

    def test_stamps_missing_timestamp(self):
        client, values = _client()
        values.append.return_value.execute.return_value = {}

        saved = client.append_lead(LeadRecord(customer_name="Sam"))
        assert saved.timestamp
        assert saved.customer_name == "Sam"


# ── Tests: update_status ─────────────────────────────────────────────


class TestUpdateStatus:
    def test_updates_most_recent_matching_row(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {
            "values": [
                list(LEAD_COLUMNS),
                _row("Jane", "+15551234567"),
                _row("Bob", "+15559999999"),
                _row("Jane", "+15551234567"),
            ]
        }
        values.update.return_value.execute.return_value = {}

        row_number = client.update_status("+15551234567", "booked")

        assert row_number == 4
        values.update.assert_called_once_with(
            spreadsheetId=SHEET_ID,
            range="Leads!K4",
            valueInputOption="RAW",
            body={"values": [["booked"]]},
        )

    def test_missing_phone_raises(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {
            "values": [list(LEAD_COLUMNS), _row("Bob", "+15559999999")],
        }

        with pytest.raises(LeadNotFoundError, match=r"\+15551234567"):
            client.update_status("+15551234567", "booked")
        values.update.assert_not_called()

    def test_empty_sheet_raises(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {}

        with pytest.raises(LeadNotFoundError):
            client.update_status("+15551234567", "booked")


# ── Tests: list_leads / initialize_sheet ─────────────────────────────


class TestListLeads:
    def test_skips_header_and_blank_rows(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {
            "values": [
                list(LEAD_COLUMNS),
                _row("Jane", "+15551234567", "booked"),
                [],
                ["2026-03-02", "Short Row", "+15550000001"],
            ]
        }

        leads = client.list_leads()

        assert [lead.customer_name for lead in leads] == ["Jane", "Short Row"]
        assert leads[0].status == "booked"
        assert leads[1].status == "new"
        assert leads[1].email == ""
        assert values.get.call_args.kwargs == {"spreadsheetId": SHEET_ID, "range": "Leads!A:K"}

    def test_sheet_without_header(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {"values": [_row("Jane", "+15551234567")]}

        assert len(client.list_leads()) == 1


class TestInitializeSheet:
    def test_writes_headers_when_empty(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {}
        values.append.return_value.execute.return_value = {}

        assert client.initialize_sheet() is True
        assert values.get.call_args.kwargs["range"] == "Leads!A1"
        assert values.append.call_args.kwargs["body"] == {"values": [list(LEAD_COLUMNS)]}

    def test_leaves_existing_sheet_alone(self):
        client, values = _client()
        values.get.return_value.execute.return_value = {"values": [["Timestamp"]]}

        assert client.initialize_sheet() is False
        values.append.assert_not_called()
