"""Probe and status HTTP API (liveness, readiness, recent events)."""
from __future__ import annotations

from dataclasses import asdict
from threading import Event, Thread

import uvicorn
from fastapi import FastAPI, Query, Response, status

from . import db
from .api_models import EventOut, ProbeOut


class ProbeState:
    def __init__(self) -> None:
        self.crd_established = Event()
        self.watching = Event()
        self.stopping = Event()

    def snapshot(self) -> ProbeOut:
        if self.stopping.is_set():
            st = "stopping"
        elif self.crd_established.is_set() and self.watching.is_set():
            st = "ok"
        else:
            st = "starting"
        return ProbeOut(
            status=st,
            crd_established=self.crd_established.is_set(),
            watching=self.watching.is_set(),
        )


def create_app(state: ProbeState) -> FastAPI:
    app = FastAPI(title="Citus Cluster Operator")

    @app.get("/healthz", response_model=ProbeOut)
    def healthz() -> ProbeOut:
        return state.snapshot()

    @app.get("/readyz", response_model=ProbeOut)
    def readyz(response: Response) -> ProbeOut:
        snap = state.snapshot()
        if snap.status != "ok":
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return snap

    @app.get("/events", response_model=list[EventOut])
    def events(limit: int = Query(50, ge=1, le=1000)) -> list[EventOut]:
        return [EventOut(**asdict(e)) for e in db.list_events(limit)]

    return app


class ProbeServer:
    """uvicorn in a daemon thread; the main thread keeps signal handling."""

    def __init__(self, app: FastAPI, port: int, host: str = "0.0.0.0"):
        self.server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.server.run, name="probe-server", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self.server.should_exit = True
        if self._thr:
            self._thr.join(timeout=5)
