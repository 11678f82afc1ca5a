import logging

from fastapi import APIRouter, Depends

from yardmaster.api import deps
from yardmaster.schemas.approval import ApprovalPayload, CommitResult
from yardmaster.services.commit import CommitPipeline

router = APIRouter(tags=["approval"])
logger = logging.getLogger(__name__)


@router.post("/approve", response_model=CommitResult)
async def approve(
    payload: ApprovalPayload,
    pipeline: CommitPipeline = Depends(deps.get_commit_pipeline),
):
    """
    Apply an approved payload to the table store.

    The response always carries per-category counts. Categories that could
    not be applied are listed in ``errors``, the others still land.
    """
    if payload.is_empty:
        return CommitResult()
    logger.info(
        f"Approving {len(payload.logs)} logs, {len(payload.cleaning_slots)} slots, "
        f"{len(payload.work_orders_to_close)} work orders"
    )
    return await pipeline.commit(payload)
