"""Diagnostics Routes

Key Endpoints:
- GET /diagnostics/errors: Classified error history
- GET /diagnostics/errors/stats: Error statistics
- GET /diagnostics/recovery: Recovery history and statistics
- POST /diagnostics/recovery: Run a recovery pass
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from agent_auth.container import ServiceContainer, get_container

router = APIRouter(prefix="/api/v1/diagnostics", tags=["diagnostics"])
logger = logging.getLogger(__name__)


@router.get("/errors")
async def error_history(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    errors = container.classifier.get_error_history(limit)
    return {"errors": [error.to_dict() for error in errors], "count": len(errors)}


@router.get("/errors/stats")
async def error_stats(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return container.classifier.get_error_stats()


@router.get("/recovery")
async def recovery_history(
    limit: Optional[int] = Query(None, ge=1, le=500),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    orchestrator = container.orchestrator
    return {
        "history": [result.to_dict() for result in orchestrator.get_recovery_history(limit)],
        "stats": orchestrator.get_recovery_stats(),
        "strategies": orchestrator.get_debug_info()["strategies"],
    }


@router.post("/recovery")
async def run_recovery(
    hint: Optional[str] = Query(None, max_length=100),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Run one recovery pass on demand"""
    results = await container.orchestrator.attempt_recovery(hint=hint)
    logger.info(f"Manual recovery pass: {len(results)} strategies executed")
    return {
        "results": [result.to_dict() for result in results],
        "recovered": any(result.success for result in results),
    }
