"""Google Sheets backup sink.

The sheet has no key semantics of its own: rows are found by scanning the
identity column (B) and addressed by 1-based row number.
"""
import threading
from typing import List, Sequence, Tuple

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from boxgame.errors import SinkUnavailable, SinkWriteFailure

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']
HEADER = ['timestamp', 'identity', 'email', 'phone', 'boxChoice', 'won', 'prizeLocation', 'prizeCode']
IDENTITY_COLUMN = 1
LAST_COLUMN = 'H'


def row_number(index: int) -> int:
    """Sheet row number for a 0-based index into a full-range fetch."""
    return index + 1


class GoogleSheetsSink:
    def __init__(self, spreadsheet_id: str, credentials_file: str, sheet_name: str = 'Sheet1'):
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self.sheet_name = sheet_name
        self._service = None
        self._lock = threading.Lock()

    @property
    def full_range(self) -> str:
        return f'{self.sheet_name}!A:{LAST_COLUMN}'

    def _values(self):
        with self._lock:
            if self._service is None:
                try:
                    creds = service_account.Credentials.from_service_account_file(
                        self.credentials_file, scopes=SCOPES
                    )
                    self._service = build('sheets', 'v4', credentials=creds, cache_discovery=False)
                except (OSError, ValueError, GoogleAuthError) as exc:
                    raise SinkUnavailable(f'Could not connect to Google Sheets: {exc}')
        return self._service.spreadsheets().values()

    def fetch_rows(self) -> List[list]:
        try:
            response = self._values().get(
                spreadsheetId=self.spreadsheet_id, range=self.full_range
            ).execute()
        except (HttpError, OSError) as exc:
            raise SinkUnavailable(f'Could not read backup sheet: {exc}')
        return response.get('values', [])

    def append_rows(self, rows: Sequence[list]) -> None:
        if not rows:
            return
        try:
            self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=self.full_range,
                valueInputOption='USER_ENTERED',
                insertDataOption='INSERT_ROWS',
                body={'values': [list(r) for r in rows]},
            ).execute()
        except (HttpError, OSError) as exc:
            raise SinkWriteFailure(f'Append to backup sheet failed: {exc}')

    def update_rows(self, updates: Sequence[Tuple[int, list]]) -> None:
        if not updates:
            return
        data = [
            {
                'range': f'{self.sheet_name}!A{number}:{LAST_COLUMN}{number}',
                'values': [list(values)],
            }
            for number, values in updates
        ]
        try:
            self._values().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={'valueInputOption': 'USER_ENTERED', 'data': data},
            ).execute()
        except (HttpError, OSError) as exc:
            raise SinkWriteFailure(f'Batch update of backup sheet failed: {exc}')


def build_sink(config):
    spreadsheet_id = config.get('SPREADSHEET_ID')
    if not spreadsheet_id:
        return None
    return GoogleSheetsSink(
        spreadsheet_id=spreadsheet_id,
        credentials_file=config.get('GOOGLE_CREDENTIALS_FILE'),
        sheet_name=config.get('SHEET_NAME') or 'Sheet1',
    )
