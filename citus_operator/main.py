from __future__ import annotations

import logging
import signal
import sys

from . import db
from .api import ProbeServer, ProbeState, create_app
from .controller import Controller
from .crd import register_crd, wait_established
from .errors import BootstrapError
from .kube import Context, KubeClient
from .settings import Settings, settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def install_signal_handlers(ctx: Context) -> None:
    def _handle(signum, _frame) -> None:
        db.log_event("INFO", f"Received {signal.Signals(signum).name}; shutting down")
        ctx.stop.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def bootstrap(ctx: Context, state: ProbeState) -> None:
    """Install the CRD and wait until the API server serves it.

    Nothing watches or reconciles before this returns.
    """
    register_crd(ctx.kube)
    wait_established(ctx.kube, ctx.settings.establish_timeout_s, ctx.stop)
    state.crd_established.set()


def run(ctx: Context, state: ProbeState) -> None:
    bootstrap(ctx, state)
    controller = Controller(ctx)
    state.watching = controller.ready
    try:
        controller.run()
    finally:
        state.stopping.set()


def main(cfg: Settings = settings) -> int:
    configure_logging(cfg.log_level)
    db.init_db()

    state = ProbeState()
    probe = ProbeServer(create_app(state), cfg.probe_port) if cfg.probe_port else None
    if probe:
        probe.start()

    try:
        ctx = Context(kube=KubeClient.from_env(cfg.field_manager), settings=cfg)
        install_signal_handlers(ctx)
        run(ctx, state)
    except BootstrapError as e:
        db.log_event("ERROR", f"Startup failed: {e}")
        return 1
    finally:
        if probe:
            probe.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
