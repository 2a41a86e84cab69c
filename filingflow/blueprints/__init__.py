"""
FilingFlow — Filing Workflow Tracker
Blueprint helpers.
"""

from flask import request


def page_params(default_limit=50, max_limit=200):
    """Read ``limit`` / ``offset`` query params, clamped to sane bounds.

    Returns:
        (limit, offset)
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return max(limit, 1), offset
