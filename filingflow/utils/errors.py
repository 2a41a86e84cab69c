"""JSON error bodies shared by every blueprint.

Body shape: ``{"error": <message>, "code": <E.*>, "details": {...}?}``.

    from filingflow.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Workflow period not found")
    return api_error(E.STAGE_SKIPPED, "Confirm the skip", details={"skipped_stages": [...]})
"""

from __future__ import annotations

from flask import jsonify

from filingflow.core.exceptions import ConflictError, NotFoundError, ValidationError


class E:
    """Machine-readable error codes, grouped by the HTTP status they default to."""

    # 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    STAGE_SKIPPED = "ERR_STAGE_SKIPPED"
    # 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    # 404
    NOT_FOUND = "ERR_NOT_FOUND"
    # 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    # 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE = {
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# Domain exception → error code; first matching base class wins.
_CODE_BY_EXCEPTION = (
    (NotFoundError, E.NOT_FOUND),
    (ConflictError, E.CONFLICT_STATE),
    (ValidationError, E.VALIDATION_INVALID),
)


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None):
    """
    Build ``(response, status)`` for a Flask view.

    ``status`` overrides the code's default; codes without one answer 400.
    ``details`` is omitted from the body when empty.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)


def domain_error(exc: Exception):
    """Translate a ``filingflow.core.exceptions`` error into an API response."""
    for exc_type, code in _CODE_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return api_error(code, str(exc), details=getattr(exc, "details", None))
    return api_error(E.INTERNAL, "Internal server error")
