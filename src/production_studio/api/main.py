"""Main FastAPI application with WebSocket progress streaming"""

import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..agents import create_orchestrator
from ..core.config import ORCHESTRATION_MODE, REDIS_URL
from ..core.context import ToolContext
from ..core.session_store import SessionStore
from ..core.state import serialize_state
from ..tools.status import summarize_assets
from .api_types import DeleteResponse, ProductionRequest, ProductionResponse, ProductionStatus
from .redis_state import RedisStateManager

logger = logging.getLogger(__name__)

MODES = ("monolithic", "supervisor")
WS_POLL_INTERVAL = 0.1  # seconds

OrchestratorFactory = Callable[[ToolContext, str], Any]


def _default_context(redis_state: Optional[RedisStateManager], loop: asyncio.AbstractEventLoop) -> ToolContext:
    from ..providers import build_providers
    store = SessionStore(mirror=redis_state.mirror(loop) if redis_state else None)
    return ToolContext(store=store, providers=build_providers())


def _default_factory(context: ToolContext, mode: str):
    return create_orchestrator(context, mode)


def create_app(context: Optional[ToolContext] = None,
               orchestrator_factory: Optional[OrchestratorFactory] = None,
               redis_url: Optional[str] = None) -> FastAPI:
    """Build the API

    Args:
        context: Shared store and providers; built from the environment when None
        orchestrator_factory: ``factory(context, mode)`` returning an object with ``run(query, on_progress)``
        redis_url: Redis for the session mirror and event channel (REDIS_URL when None, disabled when empty)
    """
    factory = orchestrator_factory or _default_factory
    redis_url = REDIS_URL if redis_url is None else redis_url

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = asyncio.get_running_loop()
        app.state.loop = loop
        app.state.redis_state = RedisStateManager(redis_url) if redis_url else None
        app.state.context = context or _default_context(app.state.redis_state, loop)
        app.state.runs = {}
        logger.info(f"[API] Started (redis={'on' if redis_url else 'off'})")

        yield

        if app.state.redis_state:
            await app.state.redis_state.close()

    app = FastAPI(
        title="Production Studio",
        description="Autonomous narrated video production with real-time progress streaming",
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _get_run(run_id: str) -> Dict[str, Any]:
        run = app.state.runs.get(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail=f"Production not found: {run_id}")
        return run

    def _execute(run_id: str, query: str, mode: str):
        """Runs in the worker thread pool"""
        run = app.state.runs[run_id]
        redis_state = app.state.redis_state
        shared = app.state.context

        def on_progress(event: Dict[str, Any]):
            run["events"].append(event)
            if redis_state:
                asyncio.run_coroutine_threadsafe(redis_state.publish_event(run_id, event), app.state.loop)

        # Each run gets its own context so emitters never cross
        orchestrator = factory(ToolContext(store=shared.store, providers=shared.providers), mode)
        try:
            result = orchestrator.run(query, on_progress=on_progress)
        except Exception as e:
            logger.error(f"[API] Production {run_id} failed: {e}")
            run.update({"status": "failed", "error": str(e)})
            return

        if result.limit_reached:
            status = "limit_reached"
        elif result.report["is_usable"]:
            status = "completed"
        else:
            status = "failed"
        run.update({
            "status": status,
            "session_id": result.session_id,
            "final_message": result.final_message,
            "report": result.report,
            "asset_summary": summarize_assets(result.state) if result.state else None,
        })
        logger.info(f"[API] Production {run_id} {status} (session {result.session_id})")

    @app.get("/")
    async def root():
        return {
            "name": "Production Studio",
            "version": "0.1.0",
            "status": "running"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        redis_status = "disabled"
        if app.state.redis_state:
            try:
                await app.state.redis_state.ping()
                redis_status = "connected"
            except Exception as e:
                redis_status = f"error: {str(e)}"

        return {
            "status": "healthy",
            "redis": redis_status,
            "activeRuns": len([r for r in app.state.runs.values() if r["status"] == "running"]),
            "timestamp": datetime.now().isoformat()
        }

    @app.post("/productions", response_model=ProductionResponse)
    async def start_production(request: ProductionRequest, background_tasks: BackgroundTasks):
        """Start a production; progress streams on /ws/{run_id}"""
        mode = (request.mode or ORCHESTRATION_MODE).lower()
        if mode not in MODES:
            raise HTTPException(status_code=400, detail=f"Invalid mode: {mode}. Must be one of {list(MODES)}")

        run_id = uuid.uuid4().hex
        app.state.runs[run_id] = {
            "run_id": run_id,
            "status": "running",
            "mode": mode,
            "query": request.query,
            "events": [],
            "created_at": datetime.now(),
        }
        background_tasks.add_task(_execute, run_id, request.query, mode)
        logger.info(f"[API] Production {run_id} started ({mode})")
        return ProductionResponse(run_id=run_id, status="started", mode=mode)

    @app.get("/productions/{run_id}", response_model=ProductionStatus)
    async def get_production(run_id: str):
        run = _get_run(run_id)
        return ProductionStatus(
            run_id=run_id,
            status=run["status"],
            mode=run["mode"],
            session_id=run.get("session_id"),
            final_message=run.get("final_message"),
            report=run.get("report"),
            asset_summary=run.get("asset_summary"),
            error=run.get("error"),
            event_count=len(run["events"]),
            created_at=run["created_at"],
        )

    @app.get("/productions/{run_id}/state")
    async def get_production_state(run_id: str):
        """JSON-safe session state (binary assets replaced by their sizes)"""
        run = _get_run(run_id)
        session_id = run.get("session_id")
        state = app.state.context.store.get(session_id) if session_id else None
        if state is not None:
            return {"session_id": session_id, "source": "memory", "state": serialize_state(state)}
        if session_id and app.state.redis_state:
            mirrored = await app.state.redis_state.get_state(session_id)
            if mirrored is not None:
                return {"session_id": session_id, "source": "redis", "state": mirrored}
        raise HTTPException(status_code=404, detail=f"No session state for production {run_id}")

    @app.delete("/productions/{run_id}", response_model=DeleteResponse)
    async def delete_production(run_id: str):
        """Delete a production's session from memory and Redis"""
        run = _get_run(run_id)
        if run["status"] == "running":
            raise HTTPException(status_code=409, detail="Production is still running")

        deleted_from = []
        session_id = run.get("session_id")
        if session_id and app.state.context.store.delete(session_id):
            deleted_from.append("memory")
        if session_id and app.state.redis_state:
            try:
                if await app.state.redis_state.delete_session(session_id):
                    deleted_from.append("redis")
            except Exception as e:
                logger.warning(f"[API] Could not delete {session_id} from Redis: {e}")
        del app.state.runs[run_id]
        return DeleteResponse(status="deleted", run_id=run_id, deleted_from=deleted_from)

    @app.websocket("/ws/{run_id}")
    async def websocket_endpoint(websocket: WebSocket, run_id: str):
        """Streams the run's progress events, replaying those already emitted"""
        run = app.state.runs.get(run_id)
        await websocket.accept()
        if run is None:
            await websocket.close(code=1008, reason="Production not found")
            return

        sent = 0
        try:
            while True:
                events = run["events"]
                while sent < len(events):
                    await websocket.send_json(events[sent])
                    sent += 1
                if run["status"] != "running" and sent >= len(run["events"]):
                    break
                await asyncio.sleep(WS_POLL_INTERVAL)
            await websocket.send_json({"type": "closed", "status": run["status"], "sessionId": run.get("session_id")})
            await websocket.close()
        except WebSocketDisconnect:
            logger.info(f"[WebSocket] Client left production {run_id} after {sent} events")

    return app


def main():
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8080")))


if __name__ == "__main__":
    main()
