"""Analysis modules: heuristic rules and finding normalization."""

from quickscan.modules.analysis.heuristics import HeuristicRule, HeuristicRuleEngine, RULES
from quickscan.modules.analysis.normalizer import FindingNormalizer, grade_to_severity, normalize

__all__ = [
    "HeuristicRule",
    "HeuristicRuleEngine",
    "RULES",
    "FindingNormalizer",
    "grade_to_severity",
    "normalize",
]
