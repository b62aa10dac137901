"""
API Dependencies

Common dependencies for the usage endpoints.
"""

import logging

from fastapi import HTTPException, status

from app.services import EnforcementGate, get_enforcement_gate
from app.schemas.usage import ResourceKind

logger = logging.getLogger(__name__)


def get_gate() -> EnforcementGate:
    """Enforcement gate dependency; override in tests."""
    return get_enforcement_gate()


def parse_resource(resource: str) -> ResourceKind:
    """Path parameter to ResourceKind, 404 for unknown resources."""
    try:
        return ResourceKind(resource)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown resource '{resource}'",
        )
