"""
FilingFlow — Notification Blueprint.

In-app notifications for the acting user (``X-User-Id``):
    GET  /api/v1/notifications?unread_only=&limit=&offset=
    GET  /api/v1/notifications/unread-count
    POST /api/v1/notifications/<id>/read
    POST /api/v1/notifications/mark-all-read
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from filingflow.auth import require_user
from filingflow.blueprints import page_params
from filingflow.services.notification import NotificationService
from filingflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
@require_user
def list_notifications():
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit, offset = page_params()
    items, total = NotificationService.list_for_recipient(
        g.current_user.id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@require_user
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(g.current_user.id)}), 200


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@require_user
def mark_read(notification_id):
    notif = NotificationService.mark_read(notification_id, user_id=g.current_user.id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/notifications/mark-all-read", methods=["POST"])
@require_user
def mark_all_read():
    count = NotificationService.mark_all_read(g.current_user.id)
    return jsonify({"marked_read": count}), 200
