from __future__ import annotations

from dataclasses import dataclass

from .resources import PrimaryResource
from .settings import Settings, settings

# A requeue is never immediate; a zero delay would spin a failing key.
MIN_REQUEUE_S = 0.1


@dataclass(frozen=True)
class Action:
    """When the controller should look at an object again.

    ``requeue_after`` of None means "only on the next change event".
    """

    requeue_after: float | None = None

    @classmethod
    def requeue(cls, seconds: float) -> Action:
        return cls(requeue_after=max(MIN_REQUEUE_S, float(seconds)))

    @classmethod
    def await_change(cls) -> Action:
        return cls(requeue_after=None)


def on_success(cfg: Settings | None = None) -> Action:
    return Action.requeue((cfg or settings).requeue_s)


def on_error(primary: PrimaryResource | None, error: BaseException, cfg: Settings | None = None) -> Action:
    """Flat retry: every failure is requeued after the same short delay.

    No classification or escalation happens here; extend this function to
    add exponential backoff or to treat permanent errors differently.
    """
    return Action.requeue((cfg or settings).error_requeue_s)
