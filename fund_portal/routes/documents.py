from flask import Blueprint, Response, jsonify

from fund_portal.services.object_urls import registry
from fund_portal.utils.logger import get_logger


bp = Blueprint("documents", __name__, url_prefix="/api/blobs")
logger = get_logger("documents")


@bp.get("/<token>")
def get_blob(token: str):
    blob = registry.resolve(token)
    if blob is None:
        return jsonify({"error": "not found"}), 404
    headers = {}
    if blob.filename:
        headers["Content-Disposition"] = f'inline; filename="{blob.filename}"'
    return Response(blob.content, mimetype=blob.media_type, headers=headers)


@bp.delete("/<token>")
def revoke_blob(token: str):
    revoked = registry.revoke(token)
    return jsonify({"revoked": revoked}), 200 if revoked else 404
