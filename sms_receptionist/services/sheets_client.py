"""Google Sheets v4 client backing the lead CRM.

Each lead is one row in columns A–K of the configured sheet; the status
column (K) is the only one ever updated in place.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Any

from google.oauth2.credentials import Credentials

from sms_receptionist import config
from sms_receptionist.errors import LeadNotFoundError
from sms_receptionist.models import LEAD_COLUMNS, LeadRecord
from sms_receptionist.services.google_api import GoogleService

logger = logging.getLogger(__name__)

_PHONE_COLUMN = LEAD_COLUMNS.index("Phone")
_STATUS_COLUMN_LETTER = "K"


class SheetsClient(GoogleService):
    service_name = "google_sheets"
    api_name = "sheets"
    api_version = "v4"

    def __init__(
        self,
        credentials: Credentials | None = None,
        spreadsheet_id: str | None = None,
        sheet_name: str | None = None,
        *,
        api: Any = None,
    ) -> None:
        super().__init__(credentials, api=api)
        self.spreadsheet_id = spreadsheet_id or config.GOOGLE_SHEETS_ID
        self.sheet_name = sheet_name or config.GOOGLE_SHEET_NAME

    @property
    def _values(self):
        return self.api.spreadsheets().values()

    def _range(self, cell_range: str) -> str:
        return f"{self.sheet_name}!{cell_range}"

    def _get_rows(self, cell_range: str = "A:K") -> list[list[str]]:
        data = self._execute(
            "values.get",
            self._values.get(spreadsheetId=self.spreadsheet_id, range=self._range(cell_range)),
        )
        return data.get("values", [])

    def _append_row(self, row: list[str]) -> None:
        self._execute(
            "values.append",
            self._values.append(
                spreadsheetId=self.spreadsheet_id,
                range=self._range("A:K"),
                valueInputOption="RAW",
                body={"values": [row]},
            ),
        )

    def append_lead(self, lead: LeadRecord) -> LeadRecord:
        """Append *lead* as a new row, stamping the timestamp if unset."""
        if not lead.timestamp:
            lead = lead.model_copy(update={"timestamp": datetime.now(UTC).isoformat()})
        self._append_row(lead.to_row())
        logger.info("Lead saved (source=%s, status=%s)", lead.source, lead.status)
        return lead

    def update_status(self, phone: str, status: str) -> int:
        """Set the status of the most recent lead row whose phone matches.

        Returns the 1-based sheet row that was updated.

        Raises:
            LeadNotFoundError: no row carries that phone number.
        """
        rows = self._get_rows()
        for index in range(len(rows) - 1, -1, -1):
            row = rows[index]
            if len(row) > _PHONE_COLUMN and row[_PHONE_COLUMN] == phone:
                row_number = index + 1
                break
        else:
            raise LeadNotFoundError(phone)

        self._execute(
            "values.update",
            self._values.update(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(f"{_STATUS_COLUMN_LETTER}{row_number}"),
                valueInputOption="RAW",
                body={"values": [[status]]},
            ),
        )
        logger.info("Lead row %d status -> %s", row_number, status)
        return row_number

    def list_leads(self) -> list[LeadRecord]:
        """Every lead in the sheet, skipping the header row if present."""
        rows = self._get_rows()
        if rows and tuple(rows[0]) == LEAD_COLUMNS:
            rows = rows[1:]
        return [LeadRecord.from_row(row) for row in rows if any(row)]

    def initialize_sheet(self) -> bool:
        """Write the header row when the sheet is empty.  Returns ``True`` if written."""
        if self._get_rows("A1"):
            return False
        self._append_row(list(LEAD_COLUMNS))
        logger.info("Lead sheet initialised with headers")
        return True


_client: SheetsClient | None = None
_client_lock = threading.Lock()


def get_sheets_client() -> SheetsClient:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = SheetsClient()
    return _client
