import logging

from fastapi import HTTPException, Request, status

from yardmaster.core.config import PlanningPolicy
from yardmaster.services.clients.sheets import StoreClientError
from yardmaster.services.commit import CommitPipeline
from yardmaster.services.scheduler import Scheduler
from yardmaster.services.snapshot import DomainSnapshot, SnapshotIncompleteError, SnapshotLoader

logger = logging.getLogger(__name__)


def get_loader(request: Request) -> SnapshotLoader:
    """
    Dependency that provides the snapshot loader built at startup.
    """
    return request.app.state.loader


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_commit_pipeline(request: Request) -> CommitPipeline:
    return request.app.state.pipeline


def get_policy(request: Request) -> PlanningPolicy:
    return request.app.state.policy


def planning_error(e: Exception) -> HTTPException:
    """Map engine errors to the HTTP error the caller should see."""
    if isinstance(e, SnapshotIncompleteError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if isinstance(e, StoreClientError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Table store error: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


async def get_snapshot(request: Request) -> DomainSnapshot:
    """
    Dependency that loads a snapshot for read-only reporting endpoints.
    """
    try:
        return await get_loader(request).load()
    except StoreClientError as e:
        logger.error(f"Snapshot load failed: {str(e)}")
        raise planning_error(e)
