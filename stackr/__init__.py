"""
Stackr - Spending Guardrail & Savings-Challenge Engine

The computational core behind Stackr's guardrails and savings challenges
for gig workers.

DESIGN PRINCIPLES:
1. Evaluators are pure functions over supplied snapshots
2. Storage is reached only through abstract interfaces
3. Alerts are advisory and can always be recomputed
4. Challenge state changes only through the progress tracker
5. Every significant action is auditable
"""

__version__ = "1.0.0"
__author__ = "Stackr Team"
