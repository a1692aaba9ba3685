"""
Pivot aggregation of collected event counts.
"""

from .models import PivotRow, PivotTable
from .pivot import aggregate

__all__ = ["PivotRow", "PivotTable", "aggregate"]
