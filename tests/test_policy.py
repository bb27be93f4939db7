from dataclasses import replace

import pytest

from citus_operator.errors import MissingObjectKey
from citus_operator.policy import MIN_REQUEUE_S, Action, on_error, on_success


@pytest.mark.parametrize(
    "error",
    [RuntimeError("boom"), ConnectionError("refused"), MissingObjectKey("spec"), TimeoutError()],
)
def test_every_error_requeues_after_the_same_short_delay(cfg, error):
    assert on_error(None, error, cfg) == Action(requeue_after=1.0)


def test_repeated_failures_do_not_back_off(cfg):
    actions = {on_error(None, RuntimeError(str(i)), cfg) for i in range(20)}
    assert actions == {Action(requeue_after=1.0)}


def test_error_requeue_is_never_immediate(cfg):
    action = on_error(None, RuntimeError(), replace(cfg, error_requeue_s=0))
    assert action.requeue_after == MIN_REQUEUE_S
    assert action.requeue_after > 0


def test_success_requeues_after_long_delay(cfg):
    assert on_success(cfg) == Action(requeue_after=10.0)


def test_await_change_has_no_requeue():
    assert Action.await_change().requeue_after is None
