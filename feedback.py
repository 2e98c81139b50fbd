"""
feedback.py

Accept/reject counters per tag, used to re-weight suggestions.

Counts only ever grow: there is no decay or time window, so a tag's
boost or penalty is decided by whichever side has accumulated more votes.
"""

import logging
from typing import Dict, Optional

from classifier_models import FeedbackCounts

logger = logging.getLogger(__name__)


MIN_FEEDBACK = 3
HIGH_ACCEPTANCE = 0.7
LOW_ACCEPTANCE = 0.3
ACCEPTED_BOOST = 1.3
REJECTED_PENALTY = 0.7


class FeedbackTracker:
    def __init__(self, counts: Optional[Dict[str, FeedbackCounts]] = None):
        self._counts: Dict[str, FeedbackCounts] = dict(counts or {})

    def __len__(self) -> int:
        return len(self._counts)

    def record(self, tag: str, accepted: bool) -> FeedbackCounts:
        counts = self._counts.setdefault(tag, FeedbackCounts())
        if accepted:
            counts.accepted += 1
        else:
            counts.rejected += 1

        logger.debug("Feedback for %r: %d accepted, %d rejected", tag, counts.accepted, counts.rejected)
        return counts

    def get(self, tag: str) -> Optional[FeedbackCounts]:
        return self._counts.get(tag)

    def adjustment(self, tag: str) -> float:
        """
        Probability multiplier for `tag`.
        Needs at least MIN_FEEDBACK votes before it moves away from 1.0.
        """
        counts = self._counts.get(tag)
        if counts is None or counts.total < MIN_FEEDBACK:
            return 1.0

        rate = counts.acceptance_rate
        if rate > HIGH_ACCEPTANCE:
            return ACCEPTED_BOOST
        if rate < LOW_ACCEPTANCE:
            return REJECTED_PENALTY
        return 1.0

    def average_acceptance_rate(self) -> float:
        rates = [c.acceptance_rate for c in self._counts.values() if c.total > 0]
        return sum(rates) / len(rates) if rates else 0.0

    def to_dict(self) -> Dict[str, dict]:
        return {tag: counts.model_dump() for tag, counts in self._counts.items()}
