"""Result types returned by reconcilers to the control loops."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Result:
    """Outcome of one reconciliation run.

    ``requeue_after`` asks the loop to run the same key again after that many
    seconds; ``None`` means wait for the next watch event or resync.
    """

    outcome: str = "noop"
    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None
