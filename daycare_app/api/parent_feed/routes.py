# daycare_app/api/parent_feed/routes.py
from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required

from daycare_app.core.identity import current_identity, role_required, ROLE_PARENT
from daycare_app.core.rate_limit import rate_limited

parent_feed_bp = Blueprint('parent_feed_bp', __name__)


@parent_feed_bp.route('/parent-feed', methods=['GET'])
@jwt_required()
@rate_limited
@role_required(ROLE_PARENT)
def get_parent_feed():
    """학부모 피드: {"ok": true, "count": N, "entries": [...]}"""
    feed_service = current_app.services['parent_feed']
    entries = feed_service.get_feed(current_identity())
    return jsonify({"ok": True, "count": len(entries), "entries": entries}), 200
