from dataclasses import replace

import pytest
from kubernetes.client.exceptions import ApiException

from citus_operator import main as entry
from citus_operator.api import ProbeState
from citus_operator.errors import EstablishTimeout


def test_no_watch_before_crd_is_established(ctx, kube):
    kube.establish_after = None
    ctx.settings = replace(ctx.settings, establish_timeout_s=0.2)
    state = ProbeState()

    with pytest.raises(EstablishTimeout):
        entry.run(ctx, state)

    assert kube.count("watch") == 0
    assert kube.count("list") == 0
    assert not state.crd_established.is_set()


def test_bootstrap_marks_crd_established(ctx, kube):
    state = ProbeState()
    entry.bootstrap(ctx, state)
    assert state.crd_established.is_set()
    assert kube.count("watch") == 0


def test_main_exits_nonzero_on_bootstrap_failure(cfg, kube, monkeypatch):
    kube.failures["apply"] = [ApiException(status=403, reason="Forbidden")]

    class _Client:
        @staticmethod
        def from_env(field_manager=None):
            return kube

    monkeypatch.setattr(entry, "KubeClient", _Client)
    monkeypatch.setattr(entry, "install_signal_handlers", lambda ctx: None)
    cfg = replace(cfg, probe_port=0)

    assert entry.main(cfg) == 1


def test_main_runs_until_stopped(cfg, kube, monkeypatch):
    class _Client:
        @staticmethod
        def from_env(field_manager=None):
            return kube

    def stop_immediately(ctx):
        ctx.stop.set()

    monkeypatch.setattr(entry, "KubeClient", _Client)
    monkeypatch.setattr(entry, "install_signal_handlers", stop_immediately)
    cfg = replace(cfg, probe_port=0)

    assert entry.main(cfg) == 0
