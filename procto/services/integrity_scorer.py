"""
Integrity Scorer - Computes a session integrity score and review flags
from the suspicious events logged during an exam session
"""
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Computes integrity score from proctoring events.

    Formula:
        integrity_score = 100 - sum(weight[event.severity])

    clamped to 0-100 (higher is better).
    """

    WEIGHTS: Dict[str, int] = {
        "low": 2,
        "medium": 7,
        "high": 15
    }

    def __init__(self, weights: Dict[str, int] = None):
        self.weights = self.WEIGHTS.copy()
        if weights:
            self.weights.update(weights)

    def compute(self, severities: Iterable[str]) -> int:
        """
        Args:
            severities: Severity of each logged event

        Returns:
            Integrity score (0-100)
        """
        penalty = sum(self.weights.get(s, 0) for s in severities)
        return max(0, min(100, 100 - penalty))

    def compute_breakdown(self, severities: Iterable[str]) -> Dict[str, Any]:
        counts = Counter(severities)
        penalties = {
            severity: {
                "count": counts.get(severity, 0),
                "weight": weight,
                "penalty": counts.get(severity, 0) * weight
            }
            for severity, weight in self.weights.items()
        }
        total_penalty = sum(p["penalty"] for p in penalties.values())
        return {
            "integrity_score": max(0, min(100, 100 - total_penalty)),
            "penalties": penalties
        }


class FlagGenerator:
    """
    Generates flags for human review from a session's events.
    """

    TAB_SWITCH_THRESHOLD = 3

    # Critical flags that always require review
    CRITICAL_FLAGS = ["high_severity"]

    # Score threshold below which a session is flagged
    REVIEW_SCORE_THRESHOLD = 60

    # Minimum flags for review
    MIN_FLAGS_FOR_REVIEW = 2

    def generate(self, events: List[Dict[str, str]], integrity_score: int) -> List[str]:
        """
        Args:
            events: Dicts with at least type and severity
            integrity_score: Score from IntegrityScorer

        Returns:
            List of flag names that were triggered
        """
        flags = []
        types = Counter(e["type"] for e in events)

        if types.get("tab_switch", 0) >= self.TAB_SWITCH_THRESHOLD:
            flags.append("tab_switch")
        if any(e["severity"] == "high" for e in events):
            flags.append("high_severity")
        if integrity_score < self.REVIEW_SCORE_THRESHOLD:
            flags.append("low_integrity")

        for flag in flags:
            logger.debug(f"Flag triggered: {flag}")
        return flags

    def needs_review(self, flags: List[str]) -> bool:
        if any(f in self.CRITICAL_FLAGS for f in flags):
            return True
        return len(flags) >= self.MIN_FLAGS_FOR_REVIEW


def assess_session(events: List[Dict[str, str]]) -> Dict[str, Any]:
    """Integrity score, flags and review decision for a list of event dicts"""
    scorer = IntegrityScorer()
    flagger = FlagGenerator()

    score = scorer.compute(e["severity"] for e in events)
    flags = flagger.generate(events, score)
    return {
        "integrity_score": score,
        "flags": flags,
        "needs_review": flagger.needs_review(flags)
    }
