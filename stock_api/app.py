import os
import logging
import traceback

from flask import Flask, request, jsonify
from flask_cors import CORS

from . import columns, pipeline
from .config import (
    ALLOWED_ORIGINS,
    INCLUDE_ERROR_STACK,
    LOG_LEVEL,
    ROW_SOURCE,
    WORKSHEET_NAME,
    ConfigError,
    ZohoSettings,
    require_env,
)
from .gsheets import GoogleSheetSource
from .zoho import ZohoCredentials, ZohoSheetClient, exchange_authorization_code

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
log = logging.getLogger("stock-api")

app = Flask(__name__)
app.json.sort_keys = False  # keep result fields in projection order
if ALLOWED_ORIGINS:
    CORS(app, resources={r"/stock": {"origins": ALLOWED_ORIGINS}}, supports_credentials=False)
else:
    CORS(app, supports_credentials=False)

# =========================
# Row source
# =========================
# Only the access token survives between requests; rows are fetched fresh.
TOKEN_CACHE = {"settings": None, "credentials": None}


def zoho_credentials(settings):
    if TOKEN_CACHE["credentials"] is None or TOKEN_CACHE["settings"] != settings:
        TOKEN_CACHE["credentials"] = ZohoCredentials(
            settings.client_id, settings.client_secret, settings.refresh_token
        )
        TOKEN_CACHE["settings"] = settings
    return TOKEN_CACHE["credentials"]


def load_rows():
    if ROW_SOURCE == "gsheets":
        sheet_id = require_env("SHEET_ID")
        return GoogleSheetSource().fetch_all_rows(sheet_id, WORKSHEET_NAME)
    if ROW_SOURCE != "zoho":
        raise ConfigError(f"Unknown ROW_SOURCE: {ROW_SOURCE!r} (expected 'zoho' or 'gsheets')")
    settings = ZohoSettings.from_env()
    client = ZohoSheetClient(zoho_credentials(settings))
    return client.fetch_all_rows(settings.document_id, WORKSHEET_NAME)


def _error_payload(e):
    body = {"error": str(e) or e.__class__.__name__}
    if INCLUDE_ERROR_STACK:
        body["stack"] = traceback.format_exc()
    return body

# =========================
# Stock
# =========================
@app.get("/stock")
def stock():
    try:
        selection = pipeline.FilterSelection.from_args(request.args)
        rows = load_rows()

        if not rows:
            return jsonify({
                "options": pipeline.empty_options(),
                "results": [],
                "note": "No records returned from sheet (or sheet empty).",
            })

        col = columns.resolve(rows[0])
        debug = columns.diagnostics(rows[0], col)
        if debug["missingDetected"]:
            log.warning("undetected columns %s; sheet keys=%s",
                        debug["missingDetected"], debug["availableKeysInSheet"])

        view = pipeline.apply(rows, col, selection)
        log.info("STOCK selection=%s total=%d available=%d filtered=%d",
                 selection, view.total_records, view.available_records, view.filtered_records)

        return jsonify({
            "options": view.options,
            "results": view.results,
            "meta": view.meta(),
            "debug": debug,
        })
    except Exception as e:
        log.exception("stock error")
        return jsonify(_error_payload(e)), 500

# =========================
# Zoho OAuth bootstrap
# =========================
@app.get("/zoho/callback")
def zoho_callback():
    code = (request.args.get("code") or "").strip()
    if not code:
        return jsonify({"error": "Missing ?code from Zoho OAuth redirect."}), 400
    try:
        client_id, client_secret = require_env("ZOHO_CLIENT_ID", "ZOHO_CLIENT_SECRET")
        redirect_uri = request.base_url
        status, data = exchange_authorization_code(code, redirect_uri, client_id, client_secret)
        log.info("Zoho code exchange status=%s refresh_token=%s", status, bool(data.get("refresh_token")))
        return jsonify({
            "message": (
                "Copy refresh_token from this response and set it as ZOHO_REFRESH_TOKEN "
                "in the environment. Then restart the server."
            ),
            "data": data,
        })
    except Exception as e:
        log.exception("zoho callback error")
        return jsonify(_error_payload(e)), 500

# =========================
# Diagnostics
# =========================
@app.get("/health")
def health():
    try:
        rows = load_rows()
        sample = rows[0] if rows else {}
        col = columns.resolve(sample)
        return {
            "ok": True,
            "row_source": ROW_SOURCE,
            "worksheet": WORKSHEET_NAME,
            "rows": len(rows),
            "columns": list(sample.keys()),
            "detectedColumns": col,
            "missingDetected": columns.missing_fields(col),
        }
    except Exception as e:
        log.exception("health check failed")
        return {"ok": False, "error": str(e)}, 500

# =========================
# Run
# =========================
def main():
    port = int(os.getenv("PORT", 8000))
    app.run(host="0.0.0.0", port=port, debug=False)


if __name__ == "__main__":
    main()
