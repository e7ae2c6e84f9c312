from __future__ import annotations
from unittest.mock import patch

import pytest

from stock_api import app as app_module
from stock_api.config import ConfigError, ZohoSettings
from stock_api.zoho import ZohoAuthError, ZohoSheetError


@pytest.fixture()
def rows_from(monkeypatch):
    def _install(rows):
        monkeypatch.setattr(app_module, "load_rows", lambda: rows)
    return _install


def test_stock_success_shape(client, rows_from, stock_rows):
    rows_from(stock_rows)
    res = client.get("/stock")
    assert res.status_code == 200
    body = res.get_json()
    assert set(body) == {"options", "results", "meta", "debug"}
    assert body["options"]["models"] == ["Activa", "Dio"]
    assert body["meta"] == {"totalRecords": 7, "availableRecords": 5, "filteredRecords": 4}
    assert body["debug"]["missingDetected"] == []
    assert body["debug"]["availableKeysInSheet"] == list(stock_rows[0].keys())
    assert body["debug"]["detectedColumns"]["color"] == "Colour"
    assert body["debug"]["detectedColumns"]["type"] is None


def test_stock_query_params_are_trimmed(client, rows_from, stock_rows):
    rows_from(stock_rows)
    body = client.get("/stock", query_string={"model": "  Activa ", "variant": "DLX"}).get_json()
    assert body["options"]["models"] == ["Activa", "Dio"]
    assert body["options"]["variants"] == ["DLX", "STD"]
    assert [r["frameNumber"] for r in body["results"]] == ["ME4JF52"]
    assert body["meta"]["filteredRecords"] == 1


def test_stock_empty_sheet(client, rows_from):
    rows_from([])
    res = client.get("/stock")
    assert res.status_code == 200
    body = res.get_json()
    assert body["options"] == {"models": [], "variants": [], "colors": [], "locations": []}
    assert body["results"] == []
    assert body["note"]


def test_stock_reports_undetected_executive(client, rows_from):
    rows_from([
        {"FrameNo": "F1", "Model": "Activa", "Variant": "STD", "Color": "Red", "Location": "Godown", "Salesman": "A"},
    ])
    body = client.get("/stock").get_json()
    assert body["debug"]["detectedColumns"]["executive"] is None
    assert "executive" in body["debug"]["missingDetected"]
    assert [r["executiveName"] for r in body["results"]] == [""]


@pytest.mark.parametrize("exc", [
    ConfigError("Missing env var: ZOHO_DOCUMENT_ID"),
    ZohoAuthError("Zoho token refresh failed: 400 {}"),
    ZohoSheetError("Zoho Sheet API failed: 500 {\"rawText\": \"down\"}"),
])
def test_stock_failures_become_500(client, monkeypatch, exc):
    def boom():
        raise exc
    monkeypatch.setattr(app_module, "load_rows", boom)
    res = client.get("/stock")
    assert res.status_code == 500
    body = res.get_json()
    assert body["error"] == str(exc)
    assert "stack" in body


def test_stack_can_be_disabled(client, monkeypatch):
    def boom():
        raise ZohoSheetError("down")
    monkeypatch.setattr(app_module, "load_rows", boom)
    monkeypatch.setattr(app_module, "INCLUDE_ERROR_STACK", False)
    body = client.get("/stock").get_json()
    assert body == {"error": "down"}


def test_missing_config_fails_before_network(client, monkeypatch):
    for name in ["ZOHO_CLIENT_ID", "ZOHO_CLIENT_SECRET", "ZOHO_REFRESH_TOKEN", "ZOHO_DOCUMENT_ID"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(app_module, "ROW_SOURCE", "zoho")
    with patch("stock_api.zoho.requests.post") as post:
        res = client.get("/stock")
    assert res.status_code == 500
    assert "ZOHO_CLIENT_ID" in res.get_json()["error"]
    post.assert_not_called()


def test_unknown_row_source(client, monkeypatch):
    monkeypatch.setattr(app_module, "ROW_SOURCE", "excel")
    res = client.get("/stock")
    assert res.status_code == 500
    assert "ROW_SOURCE" in res.get_json()["error"]


def test_credentials_cached_across_requests(monkeypatch):
    monkeypatch.setattr(app_module, "TOKEN_CACHE", {"settings": None, "credentials": None})
    s1 = ZohoSettings("cid", "secret", "refresh", "doc")
    first = app_module.zoho_credentials(s1)
    assert app_module.zoho_credentials(ZohoSettings("cid", "secret", "refresh", "doc")) is first
    rotated = app_module.zoho_credentials(ZohoSettings("cid", "secret", "refresh-2", "doc"))
    assert rotated is not first
    assert rotated.refresh_token == "refresh-2"


def test_load_rows_uses_google_source(monkeypatch):
    monkeypatch.setattr(app_module, "ROW_SOURCE", "gsheets")
    monkeypatch.setenv("SHEET_ID", "sheet-1")
    calls = []

    class FakeSource:
        def fetch_all_rows(self, sheet_id, worksheet_name):
            calls.append((sheet_id, worksheet_name))
            return [{"Frame": "F1"}]

    monkeypatch.setattr(app_module, "GoogleSheetSource", FakeSource)
    assert app_module.load_rows() == [{"Frame": "F1"}]
    assert calls == [("sheet-1", app_module.WORKSHEET_NAME)]


# ---------- OAuth bootstrap ----------
def test_callback_requires_code(client):
    res = client.get("/zoho/callback")
    assert res.status_code == 400
    assert "code" in res.get_json()["error"]


def test_callback_exchanges_code(client, monkeypatch):
    monkeypatch.setenv("ZOHO_CLIENT_ID", "cid")
    monkeypatch.setenv("ZOHO_CLIENT_SECRET", "secret")
    seen = {}

    def fake_exchange(code, redirect_uri, client_id, client_secret):
        seen.update(code=code, redirect_uri=redirect_uri, client_id=client_id)
        return 200, {"refresh_token": "r-123"}

    monkeypatch.setattr(app_module, "exchange_authorization_code", fake_exchange)
    res = client.get("/zoho/callback?code=abc")
    assert res.status_code == 200
    body = res.get_json()
    assert body["data"] == {"refresh_token": "r-123"}
    assert "ZOHO_REFRESH_TOKEN" in body["message"]
    assert seen == {"code": "abc", "redirect_uri": "http://localhost/zoho/callback", "client_id": "cid"}


def test_callback_missing_client_config(client, monkeypatch):
    monkeypatch.delenv("ZOHO_CLIENT_ID", raising=False)
    monkeypatch.delenv("ZOHO_CLIENT_SECRET", raising=False)
    res = client.get("/zoho/callback?code=abc")
    assert res.status_code == 500
    assert "ZOHO_CLIENT_ID" in res.get_json()["error"]


# ---------- health ----------
def test_health_reports_columns(client, rows_from, stock_rows):
    rows_from(stock_rows)
    body = client.get("/health").get_json()
    assert body["ok"] is True
    assert body["rows"] == 7
    assert body["columns"][0] == "Frame No"
    assert body["missingDetected"] == []


def test_health_failure(client, monkeypatch):
    def boom():
        raise ZohoSheetError("down")
    monkeypatch.setattr(app_module, "load_rows", boom)
    res = client.get("/health")
    assert res.status_code == 500
    assert res.get_json() == {"ok": False, "error": "down"}
