from flask import Blueprint, jsonify
import requests
from fund_portal.services.object_urls import registry
from fund_portal.utils.config import API_BASE_URL
from fund_portal.utils.logger import get_logger


bp = Blueprint("health", __name__, url_prefix="/api/system")
logger = get_logger("health")


@bp.get("/health")
def health():
    status = {"flask": "ok", "backend": "down", "live_blobs": registry.live_count}
    try:
        r = requests.get(f"{API_BASE_URL}/application-status", timeout=3)
        status["backend"] = "ok" if r.status_code < 500 else "down"
    except requests.RequestException as e:
        logger.warning("Backend health probe failed: %s", e)
        status["backend"] = "down"
    return jsonify(status), 200
