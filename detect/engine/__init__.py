"""Evaluation engine: decides Match/NoMatch for one entity at a time."""

from .evaluator import evaluate
from .fold import fold
from .frame import EvaluationFrame, Phase, Verdict

__all__ = [
    "EvaluationFrame",
    "Phase",
    "Verdict",
    "evaluate",
    "fold",
]
