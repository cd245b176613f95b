"""
Multi-Agent Sandbox - FastAPI Application
=========================================
HTTP surface for the session resume protocol: invoke a session with a
query, resume a suspended session with a human decision, inspect the
checkpointed state, close a session.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ...core.config import configure_logging, get_settings
from ...core.exceptions import SessionNotFound, SessionNotSuspended
from ...core.graph_factory import RoutingStrategy, list_available_graphs
from ...core.orchestrator import RunOutcome, SessionOrchestrator
from ...models.conversation_state import ResumeDecision

logger = logging.getLogger(__name__)


# API Models
class InvokeRequest(BaseModel):
    """Request model for invoking a session"""
    query: str = Field(..., min_length=1, description="Natural language query")
    strategy: Optional[RoutingStrategy] = Field(None, description="Routing strategy; defaults to the session's last one")


class ResumeRequest(BaseModel):
    """Request model for resuming a suspended session"""
    decision: ResumeDecision = Field(..., description="approve, edit or reject")
    payload: Optional[str] = Field(None, description="Replacement text for edit, optional reason for reject")


class HealthResponse(BaseModel):
    status: str
    version: str
    strategies: Dict[str, str]


class SessionStateResponse(BaseModel):
    session_id: str
    strategy: str
    state: Dict[str, Any]


def create_app(orchestrator: Optional[SessionOrchestrator] = None) -> FastAPI:
    """Build the FastAPI application; a prebuilt orchestrator is used as-is"""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic"""
        logger.info(f"Starting {settings.app_name}")
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = SessionOrchestrator()
        logger.info("Service initialization complete")
        yield
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        description="Supervisor/specialist multi-agent routing sandbox",
        version=settings.app_version,
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_orchestrator(request: Request) -> SessionOrchestrator:
        current = getattr(request.app.state, "orchestrator", None)
        if current is None:
            raise HTTPException(status_code=503, detail="Orchestrator not initialized")
        return current

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="healthy", version=settings.app_version, strategies=list_available_graphs())

    @app.post("/sessions/{session_id}/invoke", response_model=RunOutcome)
    async def invoke_session(
        session_id: str,
        request: InvokeRequest,
        orchestrator: SessionOrchestrator = Depends(get_orchestrator)
    ):
        return await orchestrator.invoke(session_id, request.query, request.strategy)

    @app.post("/sessions/{session_id}/resume", response_model=RunOutcome)
    async def resume_session(
        session_id: str,
        request: ResumeRequest,
        orchestrator: SessionOrchestrator = Depends(get_orchestrator)
    ):
        try:
            return await orchestrator.resume(session_id, request.decision, request.payload)
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SessionNotSuspended as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.get("/sessions/{session_id}", response_model=SessionStateResponse)
    async def get_session(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
        try:
            return await orchestrator.get_session(session_id)
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.delete("/sessions/{session_id}", status_code=204)
    async def close_session(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)) -> None:
        try:
            await orchestrator.close_session(session_id)
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/strategies")
    async def list_strategies() -> List[Dict[str, str]]:
        return [{"name": name, "description": description} for name, description in list_available_graphs().items()]

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using configured host and port"""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
