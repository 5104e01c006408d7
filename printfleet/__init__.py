"""
printfleet reporting package.

This package computes the operations dashboard for a managed print fleet:
KPI counters, the monthly request trend and top client/SKU rankings over
replenishment requests ("requerimientos") read from the hosted store.
"""

from __future__ import annotations

from dotenv import load_dotenv

# Load local env vars when present. Keep imports lightweight to avoid side-effects
# during package import in environments like AWS Lambda or unit tests.
load_dotenv()

__version__ = "0.1.0"
__all__: list[str] = []
