"""FastAPI REST API server for Care Sync Service.

Each user gets a session (in-memory collections) and a reconciliation
engine. Mutating a task or diary entry persists it locally and schedules a
debounced push; POST /users/{user_id}/sync pulls and merges remote changes.

IMPORTANT: Pydantic automatically converts ISO datetime strings to datetime objects.
"""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

import schemas
from app_state import SessionState
from config import settings
from logger_config import setup_logger
from reconciliation import ReconciliationEngine
from record_store import RecordStore
from remote_client import RemoteTableClient
from sync_events import SyncObserver

logger = setup_logger(__name__, 'api.log')


class SessionRegistry:
    """One SessionState and ReconciliationEngine per user id.

    Args:
        store: Local record store shared by all sessions
        remote: Remote table client shared by all sessions
        observer: Failure observer handed to every engine
        debounce_seconds: Override of the push debounce window
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        remote: Optional[RemoteTableClient] = None,
        observer: Optional[SyncObserver] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.store = store or RecordStore()
        self.remote = remote or RemoteTableClient()
        self.observer = observer
        self.debounce_seconds = debounce_seconds
        self._sessions: Dict[str, ReconciliationEngine] = {}

    def get(self, user_id: str) -> ReconciliationEngine:
        engine = self._sessions.get(user_id)
        if engine is None:
            state = SessionState(self.store)
            state.start_session(user_id)
            engine = ReconciliationEngine(
                state,
                self.store,
                self.remote,
                observer=self.observer,
                debounce_seconds=self.debounce_seconds,
            )
            self._sessions[user_id] = engine
        return engine

    async def aclose(self) -> None:
        for engine in self._sessions.values():
            await engine.aclose()
        self._sessions.clear()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_engine(user_id: str, registry: SessionRegistry = Depends(get_registry)) -> ReconciliationEngine:
    return registry.get(user_id)


def _sorted_tasks(tasks: List[schemas.TaskItem]) -> List[schemas.TaskItem]:
    # Scheduled tasks first, latest schedule first; unscheduled by last edit
    return sorted(
        tasks,
        key=lambda t: (t.due_date is not None, t.due_date or t.updated_at, t.updated_at),
        reverse=True,
    )


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    """Build the API application.

    Args:
        registry: Session registry to serve. A default one (service-wide
            store, Supabase remote from settings) is built when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.registry = registry or SessionRegistry()
        logger.info(f"Care Sync API started (sync enabled: {settings.SYNC_ENABLED})")
        yield
        await app.state.registry.aclose()
        logger.info("Care Sync API stopped")

    app = FastAPI(
        title="Care Sync Service API",
        description="Per-user task and diary sync with last-writer-wins reconciliation",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        """Root endpoint - service information"""
        return {
            "service": "Care Sync Service API",
            "version": "1.0.0",
            "status": "healthy",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "sync": "/users/{user_id}/sync",
            }
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint for monitoring"""
        return {
            "status": "healthy",
            "service": "care_sync",
            "database": settings.DATABASE_URL.split("://")[0],
            "remote_configured": bool(settings.SUPABASE_URL),
            "sync_enabled": settings.SYNC_ENABLED,
        }

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    @app.post("/users/{user_id}/sync", response_model=schemas.SyncSummary)
    async def sync_user(user_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        """Pull remote changes, merge them and schedule a push.

        Always succeeds: an unreachable remote leaves the local data as is.
        """
        await engine.full_sync(user_id)
        return schemas.SyncSummary(
            user_id=user_id,
            tasks=len(engine.state.tasks),
            diary=len(engine.state.diary),
            push_pending=engine.push_pending,
        )

    @app.post("/users/{user_id}/push")
    async def push_user(user_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        """Push the current collections immediately, skipping the debounce."""
        await engine.push_now(user_id)
        return {"user_id": user_id, "pushed": True}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @app.get("/users/{user_id}/tasks", response_model=List[schemas.TaskItem])
    async def list_tasks(user_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        return _sorted_tasks(engine.state.tasks)

    @app.post("/users/{user_id}/tasks", response_model=schemas.TaskItem, status_code=201)
    async def create_task(
        user_id: str,
        task: schemas.TaskCreate,
        engine: ReconciliationEngine = Depends(get_engine)
    ):
        """Create a task. `created_at` and `updated_at` are both set to now."""
        record = schemas.TaskItem(**task.model_dump())
        return engine.state.add("tasks", record)

    @app.put("/users/{user_id}/tasks/{task_id}", response_model=schemas.TaskItem)
    async def update_task(
        user_id: str,
        task_id: str,
        updates: schemas.TaskUpdate,
        engine: ReconciliationEngine = Depends(get_engine)
    ):
        """Update a task. Only provided fields are changed."""
        record = engine.state.update("tasks", task_id, updates.model_dump(exclude_none=True))
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.post("/users/{user_id}/tasks/{task_id}/complete", response_model=schemas.TaskItem)
    async def complete_task(
        user_id: str,
        task_id: str,
        done: bool = True,
        engine: ReconciliationEngine = Depends(get_engine)
    ):
        record = engine.state.update("tasks", task_id, {"is_completed": done})
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.delete("/users/{user_id}/tasks/{task_id}")
    async def delete_task(user_id: str, task_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        """Delete a task. The deletion syncs to other devices."""
        if not engine.state.remove("tasks", task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return {"message": "Task deleted successfully", "task_id": task_id}

    # ------------------------------------------------------------------
    # Diary
    # ------------------------------------------------------------------

    @app.get("/users/{user_id}/diary", response_model=List[schemas.DiaryEntry])
    async def list_diary(user_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        return sorted(engine.state.diary, key=lambda e: e.date, reverse=True)

    @app.post("/users/{user_id}/diary", response_model=schemas.DiaryEntry, status_code=201)
    async def create_diary_entry(
        user_id: str,
        entry: schemas.DiaryEntryCreate,
        engine: ReconciliationEngine = Depends(get_engine)
    ):
        record = schemas.DiaryEntry(**entry.model_dump(exclude_none=True))
        return engine.state.add("diary", record)

    @app.put("/users/{user_id}/diary/{entry_id}", response_model=schemas.DiaryEntry)
    async def update_diary_entry(
        user_id: str,
        entry_id: str,
        updates: schemas.DiaryEntryUpdate,
        engine: ReconciliationEngine = Depends(get_engine)
    ):
        record = engine.state.update("diary", entry_id, updates.model_dump(exclude_none=True))
        if record is None:
            raise HTTPException(status_code=404, detail="Diary entry not found")
        return record

    @app.delete("/users/{user_id}/diary/{entry_id}")
    async def delete_diary_entry(user_id: str, entry_id: str, engine: ReconciliationEngine = Depends(get_engine)):
        if not engine.state.remove("diary", entry_id):
            raise HTTPException(status_code=404, detail="Diary entry not found")
        return {"message": "Diary entry deleted successfully", "entry_id": entry_id}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )
