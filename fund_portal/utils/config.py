import os
from dotenv import load_dotenv

load_dotenv(override=False)


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v not in (None, "", "null", "None") else default


API_BASE_URL = (_env("API_BASE_URL", "http://localhost:8080/api/v1") or "").rstrip("/")
API_TOKEN = _env("API_TOKEN")


APPROVED_STATUS_ID = int(_env("APPROVED_STATUS_ID", "2") or "2")
MERGE_CONCURRENCY = int(_env("MERGE_CONCURRENCY", "6") or "6")
MAX_OPEN_SCREENS = int(_env("MAX_OPEN_SCREENS", "64") or "64")
REQUEST_TIMEOUT = float(_env("REQUEST_TIMEOUT", "30") or "30")


HOST = _env("HOST", "0.0.0.0")
PORT = int(_env("PORT", "8090") or "8090")
FLASK_ENV = _env("FLASK_ENV", "production")
