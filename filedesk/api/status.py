"""Status and health check endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text

from filedesk import __version__
from filedesk.api.deps import get_workflow
from filedesk.schemas.files import StatusResponse, TargetStatus
from filedesk.services.file_service import FileWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str


@router.get("/api/status", response_model=StatusResponse)
async def get_status(
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
) -> StatusResponse:
    """Report whether each target is reachable and whether the system is locked."""
    status = await workflow.get_status()
    return StatusResponse(
        targets={key: TargetStatus(**info) for key, info in status.targets.items()},
        system_locked=status.system_locked,
    )


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint for monitoring and load balancers."""
    db_status = "ok"
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        version=__version__,
        database=db_status,
    )
