from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from threading import Lock
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI

from services.scheduler import ResponderLoop

LOGGER = logging.getLogger(__name__)

LoopFactory = Callable[[], ResponderLoop]


class LoopLauncher:
    """Builds and runs the responder loop in a daemon thread, at most once per process."""

    def __init__(self, factory: LoopFactory):
        self._factory = factory
        self._lock = Lock()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[ResponderLoop] = None
        self._error: Optional[str] = None
        self._stopping = False

    @property
    def started(self) -> bool:
        return self._thread is not None

    def trigger(self) -> bool:
        with self._lock:
            if self._thread is not None:
                return False
            self._thread = threading.Thread(target=self._run, name="responder-loop", daemon=True)
        self._thread.start()
        return True

    def _run(self) -> None:
        try:
            # Credential exchange happens here, off the request path.
            loop = self._factory()
            with self._lock:
                if self._stopping:
                    return
                self._loop = loop
            loop.run_forever()
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Responder loop aborted during startup")
            with self._lock:
                self._error = str(exc)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            loop, error, started = self._loop, self._error, self._thread is not None
        if error is not None:
            return {"state": "error", "detail": error}
        if loop is None:
            return {"state": "starting" if started else "idle"}
        return loop.snapshot()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._stopping = True
            loop, thread = self._loop, self._thread
        if loop is not None:
            loop.stop()
        if thread is not None:
            thread.join(timeout)


def create_app(factory: LoopFactory) -> FastAPI:
    launcher = LoopLauncher(factory)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        launcher.stop(timeout=5)

    app = FastAPI(title="vacation-responder", lifespan=lifespan)
    app.state.launcher = launcher

    @app.get("/")
    def start_responder() -> dict:
        if launcher.trigger():
            LOGGER.info("Responder loop triggered over HTTP")
            return {"ok": True, "message": "Vacation responder started"}
        return {"ok": True, "message": "Vacation responder already running"}

    @app.get("/status")
    def responder_status() -> dict:
        return {"ok": True, "status": launcher.snapshot()}

    return app
