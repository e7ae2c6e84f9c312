"""Google Sheets row source (ROW_SOURCE=gsheets)."""
import json
import os

import gspread
from google.oauth2.service_account import Credentials

from .config import SCOPES, SERVICE_FILE, ConfigError


def gsheet_client():
    raw = os.getenv("SERVICE_JSON")
    if raw:
        info = json.loads(raw)
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
        return gspread.authorize(creds)

    if not os.path.exists(SERVICE_FILE):
        raise ConfigError(
            "Missing Google credentials. Set SERVICE_JSON with your key JSON "
            f"or place the key file at: {SERVICE_FILE}"
        )
    creds = Credentials.from_service_account_file(SERVICE_FILE, scopes=SCOPES)
    return gspread.authorize(creds)


class GoogleSheetSource:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = gsheet_client()
        return self._client

    def fetch_all_rows(self, sheet_id, worksheet_name):
        ws = self.client.open_by_key(sheet_id).worksheet(worksheet_name)
        # header row -> dict keys, same shape as Zoho records
        return ws.get_all_records()
