import os
from dataclasses import dataclass

# =========================
# Config
# =========================
ROW_SOURCE          = os.getenv("ROW_SOURCE", "zoho").strip().lower()  # "zoho" or "gsheets"
WORKSHEET_NAME      = os.getenv("WORKSHEET_NAME", "Allocation Sheet")
ZOHO_ACCOUNTS_URL   = os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com").rstrip("/")
ZOHO_SHEET_DOMAIN   = os.getenv("ZOHO_SHEET_DOMAIN", "https://sheet.zoho.com").rstrip("/")
HTTP_TIMEOUT        = float(os.getenv("HTTP_TIMEOUT", "60"))
LOG_LEVEL           = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS     = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
INCLUDE_ERROR_STACK = os.getenv("INCLUDE_ERROR_STACK", "1").strip().lower() not in ("0", "false", "no", "off")

# Google service account (ROW_SOURCE=gsheets)
SERVICE_FILE = os.getenv("SERVICE_FILE", "service-account.json")
SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]


class ConfigError(RuntimeError):
    pass


def require_env(*names):
    """Read required env vars; raise ConfigError naming every one that is unset."""
    values, missing = [], []
    for name in names:
        v = (os.getenv(name) or "").strip()
        if not v:
            missing.append(name)
        values.append(v)
    if missing:
        raise ConfigError(f"Missing env var: {', '.join(missing)}")
    return values[0] if len(values) == 1 else tuple(values)


@dataclass(frozen=True)
class ZohoSettings:
    client_id: str
    client_secret: str
    refresh_token: str
    document_id: str

    @classmethod
    def from_env(cls) -> "ZohoSettings":
        return cls(*require_env(
            "ZOHO_CLIENT_ID",
            "ZOHO_CLIENT_SECRET",
            "ZOHO_REFRESH_TOKEN",
            "ZOHO_DOCUMENT_ID",
        ))
