"""Chat-style entry point for clients that aren't Telegram."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockline.agent.message_handler import handle_message
from stockline.agent.router import CommandRouter
from stockline.api.deps import get_db, get_merchant, get_router
from stockline.models.merchant import Merchant
from stockline.schemas.records import MessageIn, ReplyOut

router = APIRouter()


@router.post("/{merchant_id}/messages", response_model=ReplyOut)
async def post_message(
    body: MessageIn,
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
    command_router: CommandRouter = Depends(get_router),
):
    """Run every command in the message and return the consolidated reply."""
    reply = await handle_message(db, merchant, body.text, command_router)
    return ReplyOut(reply=reply)
