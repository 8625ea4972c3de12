"""
DCF Valuation Engine

Turns financial assumptions about a company into an estimated intrinsic
equity value per share, with yearly projections and a sensitivity grid.
"""

from services.assumptions import resolve_assumptions
from services.orchestrator import run_tiered_valuation
from services.sensitivity import build_sensitivity_grid
from services.validation import validate

__all__ = [
    'resolve_assumptions',
    'run_tiered_valuation',
    'build_sensitivity_grid',
    'validate',
]
