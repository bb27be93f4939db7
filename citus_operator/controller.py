from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Any, Callable

from . import db
from .kube import Context, WatchExpired
from .policy import Action, on_error
from .reconciler import reconcile
from .resources import DEPENDENT, PRIMARY, ObjectKey, PrimaryResource, ResourceDescriptor, owner_key
from .runtime import WorkQueue

logger = logging.getLogger(__name__)

# (key, action, error or None)
ResultSink = Callable[[ObjectKey, Action, "BaseException | None"], None]

SHUTDOWN_GRACE_S = 15.0
WATCH_RETRY_S = 5.0


def journal_sink(key: ObjectKey, action: Action, error: BaseException | None) -> None:
    namespace, name = key
    if error is not None:
        db.log_event(
            "ERROR",
            f"Reconcile failed: {type(error).__name__}: {error}; retrying in {action.requeue_after:g}s",
            namespace=namespace,
            name=name,
        )
    elif action.requeue_after is None:
        db.log_event("INFO", "Cluster gone; dependent left to garbage collection", namespace=namespace, name=name)
    else:
        logger.debug("[%s/%s] reconciled; next resync in %gs", namespace, name, action.requeue_after)


def _key(obj: dict[str, Any]) -> ObjectKey | None:
    meta = obj.get("metadata") or {}
    if meta.get("namespace") and meta.get("name"):
        return (meta["namespace"], meta["name"])
    return None


class Controller:
    """Watches citus clusters and the CNPG clusters they own, and reconciles.

    Two watch threads feed one WorkQueue; a pool of worker threads drains
    it. Every result becomes a delayed re-add, which doubles as the periodic
    resync.
    """

    def __init__(self, ctx: Context, sink: ResultSink = journal_sink, workers: int | None = None):
        self.ctx = ctx
        self.sink = sink
        self.workers = max(1, int(workers or ctx.settings.workers))
        self.queue = WorkQueue()
        self.ready = Event()
        self._threads: list[Thread] = []
        self._lock = Lock()
        self._generations: dict[ObjectKey, int] = {}
        self._synced: set[str] = set()

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self._threads:
            return
        scope = self.ctx.settings.watch_namespace or None
        for desc, handler in (
            (PRIMARY.named(None, scope), self.on_primary_event),
            (DEPENDENT.named(None, scope), self.on_dependent_event),
        ):
            self._spawn(self._watch_loop, f"watch-{desc.group}", desc, handler)
        for i in range(self.workers):
            self._spawn(self._worker, f"worker-{i}")
        db.log_event("INFO", f"Controller started with {self.workers} worker(s)")

    def _spawn(self, target: Callable[..., None], name: str, *args: Any) -> None:
        t = Thread(target=target, args=args, name=name, daemon=True)
        self._threads.append(t)
        t.start()

    def run(self) -> None:
        """Run until the context's stop event is set."""
        self.start()
        self.ctx.stop.wait()
        self.stop()
        self.join(SHUTDOWN_GRACE_S)
        db.log_event("INFO", "Controller stopped")

    def stop(self) -> None:
        self.ctx.stop.set()
        self.queue.shutdown()
        self.ctx.kube.stop_watches()

    def join(self, timeout_s: float) -> None:
        for t in self._threads:
            t.join(timeout=timeout_s)

    # -- event mapping -----------------------------------------------------

    def on_primary_event(self, event_type: str, obj: dict[str, Any]) -> None:
        key = _key(obj)
        if key is None:
            return
        generation = int((obj.get("metadata") or {}).get("generation") or 0)
        with self._lock:
            if event_type == "DELETED":
                self._generations.pop(key, None)
            else:
                previous = self._generations.get(key)
                self._generations[key] = generation
                # Status writes bump resourceVersion but not generation.
                if event_type == "MODIFIED" and previous == generation:
                    return
        self.queue.add(key)

    def on_dependent_event(self, event_type: str, obj: dict[str, Any]) -> None:
        key = owner_key(obj)
        if key is not None:
            self.queue.add(key)

    def _watch_loop(self, desc: ResourceDescriptor, handler: Callable[[str, dict[str, Any]], None]) -> None:
        stop = self.ctx.stop
        while not stop.is_set():
            try:
                items, rv = self.ctx.kube.list(desc)
                for obj in items:
                    handler("ADDED", obj)
                self._mark_synced(desc)
                while not stop.is_set():
                    for event_type, obj in self.ctx.kube.watch(desc, rv, self.ctx.settings.watch_timeout_s):
                        if stop.is_set():
                            return
                        rv = (obj.get("metadata") or {}).get("resourceVersion") or rv
                        if event_type == "BOOKMARK":
                            continue
                        handler(event_type, obj)
            except WatchExpired:
                logger.info("watch on %s expired; relisting", desc)
            except Exception as e:
                if stop.is_set():
                    return
                db.log_event("WARN", f"Watch on {desc} failed: {type(e).__name__}: {e}")
                stop.wait(WATCH_RETRY_S)

    def _mark_synced(self, desc: ResourceDescriptor) -> None:
        with self._lock:
            self._synced.add(desc.api_version)
            if len(self._synced) == 2:
                self.ready.set()

    # -- workers -----------------------------------------------------------

    def _worker(self) -> None:
        while not self.ctx.stop.is_set():
            key = self.queue.get(timeout=1.0)
            if key is None:
                continue
            try:
                action = self.process(key)
            finally:
                self.queue.done(key)
            if action.requeue_after is None:
                self.queue.forget(key)
            else:
                self.queue.add_after(key, action.requeue_after)

    def process(self, key: ObjectKey) -> Action:
        """Reconcile one key and report the outcome; never raises."""
        namespace, name = key
        primary: PrimaryResource | None = None
        try:
            obj = self.ctx.kube.get(PRIMARY.named(name, namespace))
            if obj is None:
                with self._lock:
                    self._generations.pop(key, None)
                action = Action.await_change()
            else:
                primary = PrimaryResource.from_object(obj)
                action = reconcile(primary, self.ctx)
        except Exception as e:
            action = on_error(primary, e, self.ctx.settings)
            self._report(key, action, e)
            return action
        self._report(key, action, None)
        return action

    def _report(self, key: ObjectKey, action: Action, error: BaseException | None) -> None:
        try:
            self.sink(key, action, error)
        except Exception:
            logger.exception("result sink failed for %s/%s", *key)
