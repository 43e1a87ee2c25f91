"""Shared API dependencies: single import point for all routers.

Re-exports database session, authentication and plan-gate dependencies so
that router modules can import everything they need from one place::

    from app.api.deps import get_db, get_current_user, check_usage_limit
"""

from app.auth.dependencies import (
    get_current_admin,
    get_current_user,
)
from app.billing.dependencies import (
    GateContext,
    check_usage_limit,
    get_gate_context,
    require_feature,
    require_plan,
)
from app.database import get_db
from app.services.bulk_worker import get_bulk_worker
from app.services.sec_client import get_ticker_directory

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_admin",
    "GateContext",
    "get_gate_context",
    "check_usage_limit",
    "require_feature",
    "require_plan",
    "get_bulk_worker",
    "get_ticker_directory",
]
