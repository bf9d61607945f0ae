"""
Pending clarifications: list, answer, cancel.

Answering re-runs the original command with the answer merged in; the reply
is the same consolidated text a chat message would get.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockline.agent.message_handler import resume_clarification
from stockline.agent.router import CommandRouter
from stockline.api.deps import get_db, get_merchant, get_router
from stockline.core.exceptions import BusinessError, ClarificationClosedError, CommandError
from stockline.models.clarification import PendingClarification
from stockline.models.merchant import Merchant
from stockline.schemas.records import ClarificationAnswer, ClarificationRecord, ReplyOut
from stockline.services import clarifications as clarification_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_clarification(db: Session, merchant: Merchant, clarification_id: int) -> PendingClarification:
    record = clarification_service.get_clarification(db, merchant.id, clarification_id)
    if not record:
        raise BusinessError.not_found("Clarification", f"id={clarification_id} merchant_id={merchant.id}")
    return record


@router.get("/{merchant_id}/clarifications", response_model=List[ClarificationRecord])
def list_clarifications(merchant: Merchant = Depends(get_merchant), db: Session = Depends(get_db)):
    """Pending questions, oldest first."""
    return clarification_service.list_pending(db, merchant.id)


@router.post("/{merchant_id}/clarifications/{clarification_id}/resolve", response_model=ReplyOut)
async def resolve(
    clarification_id: int,
    body: ClarificationAnswer,
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
    command_router: CommandRouter = Depends(get_router),
):
    record = _get_clarification(db, merchant, clarification_id)
    try:
        reply = await resume_clarification(db, merchant, record, body.answer, command_router)
    except ClarificationClosedError as e:
        raise BusinessError.conflict(e.message)
    except CommandError as e:
        raise BusinessError.bad_request(e.message)
    return ReplyOut(reply=reply)


@router.post("/{merchant_id}/clarifications/{clarification_id}/cancel", response_model=ClarificationRecord)
def cancel(
    clarification_id: int,
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
):
    record = _get_clarification(db, merchant, clarification_id)
    try:
        return clarification_service.cancel_clarification(db, record)
    except ClarificationClosedError as e:
        raise BusinessError.conflict(e.message)
