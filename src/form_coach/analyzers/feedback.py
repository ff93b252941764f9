"""
Selection of the single issue surfaced to the user.

Analyzers may report several issues per frame; only the most urgent one is
shown.  A shown issue is held for ``interval_ms`` so the message does not
flicker between frames, unless something more urgent (or critical) appears.
"""

import logging
from typing import List, Optional

from ..config import FEEDBACK_INTERVAL_MS
from .models import FeedbackPriority, FormIssue, top_issue

logger = logging.getLogger(__name__)


class FeedbackSelector:

    def __init__(self, interval_ms: int = FEEDBACK_INTERVAL_MS):
        self.interval_ms = interval_ms
        self._current: Optional[FormIssue] = None
        self._shown_at: int = 0

    @property
    def current(self) -> Optional[FormIssue]:
        return self._current

    def reset(self) -> None:
        self._current = None
        self._shown_at = 0

    def select(self, issues: List[FormIssue], timestamp_ms: int) -> Optional[FormIssue]:
        """Return the issue to display at *timestamp_ms*, or ``None``."""
        held = None
        if self._current is not None and timestamp_ms - self._shown_at < self.interval_ms:
            held = self._current

        candidate = top_issue(issues)
        if candidate is None:
            self._current = held
            return held

        if (
            held is None
            or candidate.priority == FeedbackPriority.CRITICAL
            or candidate.priority.rank > held.priority.rank
        ):
            if held is None or candidate.issue_type != held.issue_type:
                self._shown_at = timestamp_ms
                logger.debug("Surfacing %s (%s)", candidate.issue_type, candidate.priority.value)
            self._current = candidate
            return candidate
        return held
