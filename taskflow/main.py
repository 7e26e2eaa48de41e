"""
main.py
───────
TaskFlow — FastAPI service entry point.

Exposes:
  REST  /api/tasks          CRUD, filter / search / sort
  REST  /api/alarm          the ringing alarm: inspect, dismiss, complete
  REST  /api/ringtones      built-in and uploaded ringtones
  REST  /api/sounds         upload / delete custom ringtone files
  WS    /ws                 real-time alarm push to the frontend
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, List, Optional, Set

from fastapi import FastAPI, File, HTTPException, Query, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Settings, get_settings
from .controller import AppController, NotifiedPolicy
from .logging_setup import setup_logging
from .models import Task, TaskCreate, TaskType, TaskUpdate
from .notifier import DesktopNotifier, Permission
from .scheduler import AlarmScheduler
from .sound_engine import AlarmDispatcher, SoundLibrary, available_ringtones
from .storage import JsonTaskStorage
from .task_store import TaskStore
from .views import SortKey, StatusFilter, task_view

logger = logging.getLogger(__name__)


# ── WebSocket connection registry ─────────────────────────────────────────────

class ConnectionManager:
    def __init__(self):
        self.active: List[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        async with self._lock:
            self.active.append(ws)

    async def disconnect(self, ws: WebSocket):
        async with self._lock:
            self.active = [c for c in self.active if c is not ws]

    async def broadcast(self, data: dict):
        async with self._lock:
            dead = []
            for ws in self.active:
                try:
                    await ws.send_json(data)
                except Exception:
                    dead.append(ws)
            self.active = [c for c in self.active if c not in dead]


def _broadcaster(ws_manager: ConnectionManager) -> Callable[[dict], None]:
    """Alarm listener that pushes controller events to every WebSocket client."""
    pending: Set[asyncio.Task] = set()

    def listener(event: dict) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        t = loop.create_task(ws_manager.broadcast(event))
        pending.add(t)
        t.add_done_callback(pending.discard)

    return listener


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    dispatcher: Optional[AlarmDispatcher] = None,
    notifier: Optional[DesktopNotifier] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    settings = settings or get_settings()

    library = SoundLibrary(settings.sounds_dir)
    store   = TaskStore(JsonTaskStorage(settings.tasks_file))
    store.load()

    if dispatcher is None:
        dispatcher = AlarmDispatcher(
            library,
            interval=settings.tone_interval,
            max_duration=settings.alarm_timeout,
        )
    if notifier is None:
        notifier = DesktopNotifier(Permission(settings.notifications))

    controller = AppController(
        store,
        dispatcher,
        notifier,
        alarm_timeout=settings.alarm_timeout,
        notified_policy=NotifiedPolicy(settings.notified_policy),
    )
    scheduler  = AlarmScheduler(controller, interval=settings.poll_interval, clock=clock)
    ws_manager = ConnectionManager()
    controller.add_listener(_broadcaster(ws_manager))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s starting: PID=%s platform=%s tasks=%d",
                    settings.app_name, os.getpid(), platform.system(), len(store))
        scheduler.start()

        yield

        await scheduler.stop()
        controller.shutdown()
        logger.info("%s shutdown complete", settings.app_name)

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.settings   = settings
    app.state.controller = controller
    app.state.scheduler  = scheduler
    app.state.library    = library
    app.state.ws_manager = ws_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── WebSocket endpoint ────────────────────────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws_manager.connect(ws)
        try:
            while True:
                try:
                    data = await ws.receive_json()
                except ValueError:
                    logger.debug("Ignoring non-JSON WebSocket frame")
                    continue
                if isinstance(data, dict) and data.get("type") == "ping":
                    await ws.send_json({"type": "pong"})
        except WebSocketDisconnect:
            pass
        finally:
            await ws_manager.disconnect(ws)

    # ── Task endpoints ────────────────────────────────────────────────────────

    @app.get("/api/tasks", response_model=list[Task])
    async def list_tasks(
        category: Optional[TaskType] = Query(None),
        status: StatusFilter = Query(StatusFilter.ALL),
        search: str = Query(""),
        sort: SortKey = Query(SortKey.TIME),
    ):
        return task_view(store.list(), category=category, status=status, search=search, sort=sort)

    @app.get("/api/tasks/{task_id}", response_model=Task)
    async def get_task(task_id: str):
        task = store.get(task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    @app.post("/api/tasks", response_model=Task, status_code=201)
    async def create_task(body: TaskCreate):
        task = controller.create_task(body)
        if not task:
            raise HTTPException(status_code=400, detail="A task needs a name, a date and a time")
        return task

    @app.patch("/api/tasks/{task_id}", response_model=Task)
    async def update_task(task_id: str, body: TaskUpdate):
        try:
            updated = controller.edit_task(task_id, body)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.errors(include_url=False, include_context=False, include_input=False))
        if not updated:
            raise HTTPException(status_code=404, detail="Task not found")
        return updated

    @app.delete("/api/tasks/{task_id}", status_code=204)
    async def delete_task(task_id: str):
        if not controller.delete_task(task_id):
            raise HTTPException(status_code=404, detail="Task not found")

    @app.post("/api/tasks/{task_id}/toggle", response_model=Task)
    async def toggle_task(task_id: str):
        task = controller.toggle_complete(task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    # ── Alarm endpoints ───────────────────────────────────────────────────────

    @app.get("/api/alarm")
    async def current_alarm():
        alarm = controller.active_alarm
        return {"ringing": alarm is not None, "alarm": alarm.to_dict() if alarm else None}

    @app.post("/api/alarm/dismiss", response_model=Task)
    async def dismiss_alarm():
        task = controller.dismiss_alarm()
        if not task:
            raise HTTPException(status_code=404, detail="No alarm is ringing")
        return task

    @app.post("/api/alarm/complete", response_model=Task)
    async def complete_alarm():
        if controller.active_alarm is None:
            raise HTTPException(status_code=404, detail="No alarm is ringing")
        task = controller.complete_alarm()
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    # ── Ringtones / custom sounds ─────────────────────────────────────────────

    @app.get("/api/ringtones")
    async def list_ringtones():
        return available_ringtones(library)

    @app.post("/api/sounds", status_code=201)
    async def upload_sound(file: UploadFile = File(...)):
        """Upload a custom ringtone; use the returned ref as `custom_audio_ref`."""
        contents = await file.read()
        try:
            ref = library.save(file.filename or "", contents)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"ref": ref, "size": len(contents)}

    @app.delete("/api/sounds/{ref}", status_code=204)
    async def delete_sound(ref: str):
        if not library.delete(ref):
            raise HTTPException(status_code=404, detail="Custom sound not found")

    # ── Health / info ─────────────────────────────────────────────────────────

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "pid": os.getpid(),
            "platform": platform.system(),
            "python": platform.python_version(),
            "tasks": len(store),
            "scheduler": scheduler.running,
        }

    return app


# ── Entry point ───────────────────────────────────────────────────────────────

def run():
    import uvicorn

    settings = get_settings()
    setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)
    uvicorn.run(
        "taskflow.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
