"""
Callee selection.

Each placed order needs one person the driver calls on arrival. The
callee is picked uniformly at random among the batch's non-donor
participants; a retried batch may pick someone else.

The random choice is injectable so tests can make it deterministic:

    selector = CalleeSelector(choose=lambda candidates: candidates[0])
"""

from __future__ import annotations

import random
from typing import Callable, Optional, Sequence

from models.order import ParticipantOrder


Chooser = Callable[[Sequence[str]], str]


class NoEligibleCalleeError(ValueError):
    """The batch has no non-donor participant."""


class CalleeSelector:
    """Picks the delivery point-of-contact for a batch."""

    def __init__(self, choose: Optional[Chooser] = None):
        self._choose = choose or random.choice

    def select(self, participants: Sequence[ParticipantOrder]) -> str:
        """
        Return the identity of the chosen callee.

        Donors are filtered out even if the caller passes them in.

        Raises:
            NoEligibleCalleeError: If no non-donor participant remains
        """
        eligible = [p.identity for p in participants if not p.is_donor]
        if not eligible:
            raise NoEligibleCalleeError("No eligible participant to receive the delivery call")
        chosen = self._choose(eligible)
        if chosen not in eligible:
            raise NoEligibleCalleeError(f"Chooser returned {chosen!r}, which is not an eligible participant")
        return chosen
