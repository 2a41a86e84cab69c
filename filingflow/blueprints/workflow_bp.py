"""
FilingFlow — Workflow Blueprint.

Endpoint groups:
  Period detail     GET /api/v1/workflow-periods/<id>
  Period history    GET /api/v1/workflow-periods/<id>/history
  Transition        PUT /api/v1/workflow-periods/<id>/workflow
  Client periods    GET /api/v1/clients/<id>/workflow-periods?family=

Every request carries ``X-User-Id``. Only managers and partners may move
a period. The service layer owns commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from filingflow.auth import require_roles, require_user
from filingflow.core.exceptions import ConflictError, NotFoundError, ValidationError
from filingflow.models import db
from filingflow.models.client import Client
from filingflow.models.workflow import WORKFLOW_FAMILIES
from filingflow.services import workflow_service
from filingflow.services.stage_catalog import allowed_next_stages
from filingflow.services.workflow_engine import NOT_PROVIDED, ActingUser
from filingflow.utils.errors import E, api_error, domain_error

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow_bp", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@workflow_bp.errorhandler(NotFoundError)
@workflow_bp.errorhandler(ValidationError)
@workflow_bp.errorhandler(ConflictError)
def _handle_domain(error):
    return domain_error(error)


@workflow_bp.errorhandler(SQLAlchemyError)
def _handle_db(error: SQLAlchemyError):
    logger.exception("Database error in workflow_bp endpoint=%s", request.endpoint)
    db.session.rollback()
    return api_error(E.DATABASE, "Database error")


@workflow_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in workflow_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Periods
# ═════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/workflow-periods/<int:period_id>", methods=["GET"])
@require_user
def get_period(period_id):
    """Period with milestones, progress and the stages it may move to."""
    period = workflow_service.get_period(period_id)
    return jsonify(workflow_service.serialize_period(period)), 200


@workflow_bp.route("/workflow-periods/<int:period_id>/history", methods=["GET"])
@require_user
def get_history(period_id):
    """History entries, newest first."""
    entries = workflow_service.list_history(period_id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)}), 200


@workflow_bp.route("/clients/<int:client_id>/workflow-periods", methods=["GET"])
@require_user
def list_client_periods(client_id):
    """A client's periods ordered by period end. Optional ``family`` filter."""
    if db.session.get(Client, client_id) is None:
        raise NotFoundError(resource="Client", resource_id=client_id)
    family = (request.args.get("family") or "").strip().upper() or None
    if family and family not in WORKFLOW_FAMILIES:
        return api_error(
            E.VALIDATION_INVALID,
            f"Invalid family. Must be one of: {sorted(WORKFLOW_FAMILIES)}",
        )
    periods = workflow_service.list_client_periods(client_id, family)
    return jsonify({"items": [workflow_service.serialize_period(p) for p in periods],
                    "total": len(periods)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Transition
# ═════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/workflow-periods/<int:period_id>/workflow", methods=["PUT"])
@require_roles("MANAGER", "PARTNER")
def update_workflow(period_id):
    """Move a period to a new stage and/or change its assignee.

    Body: {
        stage?, assigned_user_id?, notes?, skip_warning?
    }
    Presence of ``assigned_user_id`` (even null) is an explicit assignment.
    Skipping stages needs ``skip_warning: true``.
    """
    data = request.get_json(silent=True) or {}

    stage = data.get("stage") or None
    if stage is not None and not isinstance(stage, str):
        return api_error(E.VALIDATION_INVALID, "stage must be a string")

    assigned_user_id = NOT_PROVIDED
    if "assigned_user_id" in data:
        assigned_user_id = data["assigned_user_id"]
        if assigned_user_id is not None and (
            isinstance(assigned_user_id, bool) or not isinstance(assigned_user_id, int)
        ):
            return api_error(E.VALIDATION_INVALID, "assigned_user_id must be an integer or null")

    notes = (data.get("notes") or "").strip() or None

    if stage is not None and not data.get("skip_warning"):
        period, check = workflow_service.check_skip(period_id, stage)
        if check.is_skipping:
            return api_error(
                E.STAGE_SKIPPED,
                "This move skips stages; resend with skip_warning to confirm",
                details={
                    "skipped_stages": [s.value for s in check.skipped_stages],
                    "allowed_stages": [
                        s.value for s in allowed_next_stages(period.family, period.current_stage)
                    ],
                },
            )

    result = workflow_service.transition_period(
        period_id,
        acting_user=ActingUser.from_user(g.current_user),
        stage=stage,
        assigned_user_id=assigned_user_id,
        notes=notes,
    )

    return jsonify({
        "period": workflow_service.serialize_period(result.period),
        "history_entry": result.history_entry.to_dict() if result.history_entry else None,
        "milestones_touched": [m.value for m in result.milestones_touched],
        "stage_changed": result.stage_changed,
        "assignee_changed": result.assignee_changed,
        "reopened": result.reopened,
    }), 200
