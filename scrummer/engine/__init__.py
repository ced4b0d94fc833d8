"""Signal computation and history analysis."""

from scrummer.engine.actions import ActionCard, ActionPriority, recommend_actions
from scrummer.engine.narrative import Narrative, build_narrative
from scrummer.engine.signals import Metrics, SignalCalculator, SprintSetup, compute_signals
from scrummer.engine.trends import HistoryAnalysis, analyze_history

__all__ = [
    "ActionCard",
    "ActionPriority",
    "HistoryAnalysis",
    "Metrics",
    "Narrative",
    "SignalCalculator",
    "SprintSetup",
    "analyze_history",
    "build_narrative",
    "compute_signals",
    "recommend_actions",
]
