"""
Zoho OAuth + Zoho Sheet Data API helpers (server-side only).

The access token is cached on a ZohoCredentials instance and refreshed when
fewer than REFRESH_MARGIN seconds of validity remain. Concurrent requests may
both refresh; the later one simply replaces the cached credential.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from .config import HTTP_TIMEOUT, ZOHO_ACCOUNTS_URL, ZOHO_SHEET_DOMAIN

log = logging.getLogger("stock-api.zoho")

PAGE_SIZE = 1000             # worksheet.records.fetch returns at most 1000 rows
REFRESH_MARGIN = 60          # seconds
DEFAULT_TOKEN_LIFETIME = 3600


class ZohoError(RuntimeError):
    pass


class ZohoAuthError(ZohoError):
    pass


class ZohoSheetError(ZohoError):
    pass


def _parse_body(res: requests.Response) -> Tuple[Dict[str, Any], bool]:
    """JSON-first parse; returns (body, parsed_ok). Unparseable text is kept as rawText."""
    raw_text = res.text or ""
    if not raw_text.strip():
        return {}, True
    try:
        data = json.loads(raw_text)
    except ValueError:
        return {"rawText": raw_text}, False
    if not isinstance(data, dict):
        return {"rawText": raw_text}, False
    return data, True


@dataclass(frozen=True)
class Credential:
    access_token: str
    expires_at: float
    api_domain: str = ZOHO_SHEET_DOMAIN

    def remaining(self, now: float) -> float:
        return self.expires_at - now


class ZohoCredentials:
    """Access-token provider backed by a long-lived refresh token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        accounts_url: str = ZOHO_ACCOUNTS_URL,
        sheet_domain: str = ZOHO_SHEET_DOMAIN,
        timeout: float = HTTP_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.accounts_url = accounts_url.rstrip("/")
        self.sheet_domain = sheet_domain.rstrip("/")
        self.timeout = timeout
        self.clock = clock
        self._cached: Optional[Credential] = None

    def current(self) -> Optional[Credential]:
        cred = self._cached
        if cred and cred.access_token and cred.remaining(self.clock()) > REFRESH_MARGIN:
            return cred
        return None

    def refresh(self) -> Credential:
        started = self.clock()
        res = requests.post(
            f"{self.accounts_url}/oauth/v2/token",
            params={
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            timeout=self.timeout,
        )
        data, _ = _parse_body(res)
        if not res.ok or not data.get("access_token"):
            raise ZohoAuthError(f"Zoho token refresh failed: {res.status_code} {json.dumps(data)}")

        try:
            lifetime = float(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        except (TypeError, ValueError):
            lifetime = DEFAULT_TOKEN_LIFETIME
        if lifetime <= 0:
            lifetime = DEFAULT_TOKEN_LIFETIME

        # token responses may carry a CRM api_domain; Sheet calls always go to the Sheet domain
        self._cached = Credential(data["access_token"], started + lifetime, self.sheet_domain)
        log.info("Zoho access token refreshed, valid for %ss", int(lifetime))
        return self._cached

    def get(self) -> Credential:
        return self.current() or self.refresh()


class ZohoSheetClient:
    """Row source over the Zoho Sheet Data API (v2)."""

    def __init__(self, credentials: ZohoCredentials, timeout: float = HTTP_TIMEOUT):
        self.credentials = credentials
        self.timeout = timeout

    def post(self, resource_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        cred = self.credentials.get()
        # params go in the query string; some endpoints reject POST bodies
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        url = f"{cred.api_domain}/api/v2/{quote(str(resource_id), safe='')}"
        res = requests.post(
            url,
            params=query,
            headers={"Authorization": f"Zoho-oauthtoken {cred.access_token}"},
            timeout=self.timeout,
        )
        data, parsed = _parse_body(res)
        if not res.ok or not parsed or data.get("status") == "failure":
            raise ZohoSheetError(f"Zoho Sheet API failed: {res.status_code} {json.dumps(data)}")
        return data

    def fetch_all_rows(self, resource_id: str, worksheet_name: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        start_index = 1
        while True:
            data = self.post(resource_id, {
                "method": "worksheet.records.fetch",
                "worksheet_name": worksheet_name,
                "records_start_index": start_index,
                "count": PAGE_SIZE,
            })
            records = data.get("records")
            if not isinstance(records, list):
                records = []
            rows.extend(records)
            if len(records) < PAGE_SIZE:
                break
            start_index += PAGE_SIZE
        log.debug("fetched %d rows from %s/%s", len(rows), resource_id, worksheet_name)
        return rows


def exchange_authorization_code(
    code: str,
    redirect_uri: str,
    client_id: str,
    client_secret: str,
    accounts_url: str = ZOHO_ACCOUNTS_URL,
    timeout: float = HTTP_TIMEOUT,
) -> Tuple[int, Dict[str, Any]]:
    """One-time OAuth bootstrap: trade an authorization code for a refresh token."""
    res = requests.post(
        f"{accounts_url.rstrip('/')}/oauth/v2/token",
        data={
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        timeout=timeout,
    )
    data, _ = _parse_body(res)
    return res.status_code, data
