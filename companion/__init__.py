"""Momentum Companion — health telemetry sync agent.

Reads steps, exercise sessions, sleep sessions and calorie burn from a
platform health store, reconciles overlapping sources, estimates the passive
activity the store does not report, and pushes the result to a Momentum
server.

Subpackages:
    health/ — Raw record model, source reconciliation, estimation, mapping
    api/    — Momentum server wire models and HTTP client
    sync/   — Sync orchestrator, scheduler, sync log
"""

__version__ = "1.0.0"
