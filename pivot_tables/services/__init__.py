"""Service layer for pivot_tables."""
from .pivot_service import PivotService

__all__ = ["PivotService"]
