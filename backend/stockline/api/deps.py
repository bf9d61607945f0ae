"""FastAPI dependencies: DB session, merchant lookup, and the shared command router."""
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from stockline.agent.router import CommandRouter
from stockline.core.exceptions import BusinessError
from stockline.db.session import SessionLocal
from stockline.models.merchant import Merchant


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_merchant(merchant_id: int, db: Session = Depends(get_db)) -> Merchant:
    merchant = db.query(Merchant).filter(Merchant.id == merchant_id).first()
    if not merchant:
        raise BusinessError.not_found("Merchant", f"merchant_id={merchant_id}")
    return merchant


def get_router(request: Request) -> CommandRouter:
    """The router built once at startup (see stockline.main)."""
    return request.app.state.command_router
