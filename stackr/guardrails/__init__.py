"""
Spending Guardrails Package

Time-windowed limit evaluation over an append-only spending ledger,
plus weekly reflections.
"""

from stackr.guardrails.evaluator import GuardrailEvaluator
from stackr.guardrails.ledger import SpendingLedger
from stackr.guardrails.reflection import (
    FALLBACK_SUGGESTION,
    ReflectionRecorder,
    derive_overall_status,
    describe_summary,
)
from stackr.guardrails.registry import LimitRegistry
from stackr.guardrails.window import resolve_week_bounds, resolve_window

__all__ = [
    "FALLBACK_SUGGESTION",
    "GuardrailEvaluator",
    "LimitRegistry",
    "ReflectionRecorder",
    "SpendingLedger",
    "derive_overall_status",
    "describe_summary",
    "resolve_week_bounds",
    "resolve_window",
]
