"""Customer records: add/update, delete, lookups and purchase credit."""
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockline.core.config import settings
from stockline.core.exceptions import NotFoundError, ValidationError
from stockline.models.customer import Customer
from stockline.schemas.commands import AddCustomerParams
from stockline.services import clarifications
from stockline.services.clarifications import ClarificationRequest
from stockline.services.entity_matcher import KIND_CUSTOMER, EntityResolver
from stockline.services.formatting import format_money

logger = logging.getLogger(__name__)


def sanitize_customer_name(name: str) -> str:
    """Clean a customer name before it is stored or matched.

    - Strip and collapse whitespace
    - Remove SQL/script-like patterns
    - Keep letters, numbers, spaces, hyphens, apostrophes, dots
    - Limit length to 100 characters
    """
    if not name:
        raise ValidationError("Customer name cannot be empty")

    name = " ".join(name.strip().split())

    dangerous_patterns = [
        r'--',
        r';',
        r'\/\*', r'\*\/',
        r'<script', r'<\/script>',
        r'javascript:',
    ]
    for pattern in dangerous_patterns:
        name = re.sub(pattern, '', name, flags=re.IGNORECASE)

    name = re.sub(r"[^\w\s\-'.]", '', name)
    name = name[:100].strip()

    if len(name) < 2:
        raise ValidationError("Customer name must be at least 2 characters")
    return name


def find_customer_by_name(db: Session, merchant_id: int, name: str) -> Optional[Customer]:
    return db.query(Customer).filter(
        Customer.merchant_id == merchant_id,
        func.lower(Customer.name) == name.lower(),
    ).first()


def add_customer(db: Session, merchant_id: int, params: AddCustomerParams) -> Tuple[Customer, bool]:
    """Create a customer, or fill in details on the one with the same name.

    Returns (customer, created).
    """
    name = sanitize_customer_name(params.name)
    customer = find_customer_by_name(db, merchant_id, name)
    created = customer is None

    if created:
        customer = Customer(merchant_id=merchant_id, name=name, tags=[], total_spent=Decimal("0"))
        db.add(customer)

    if params.phone:
        customer.phone = params.phone
    if params.email:
        customer.email = params.email
    if params.address:
        customer.address = params.address
    if params.tags:
        merged = list(customer.tags or [])
        merged.extend(t for t in params.tags if t not in merged)
        customer.tags = merged

    db.commit()
    db.refresh(customer)
    logger.info(f"[Customers] {'Created' if created else 'Updated'} '{customer.name}' for merchant_id={merchant_id}")
    return customer, created


async def delete_customers(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    names: List[str],
    raw_params: Dict[str, Any],
) -> Tuple[List[str], List[ClarificationRequest]]:
    deleted: List[str] = []
    missing: List[ClarificationRequest] = []
    for name in names:
        result = await resolver.resolve(db, merchant_id, name, KIND_CUSTOMER, settings.DELETE_MATCH_THRESHOLD)
        if result is None or result.entity is None:
            suggestion = await resolver.suggest(db, merchant_id, name, KIND_CUSTOMER)
            missing.append(clarifications.customer_not_found(
                name, "delete_customer", raw_params, suggestion=suggestion,
            ))
            continue
        db.delete(result.entity)
        deleted.append(result.entity.name)

    if deleted:
        db.commit()
        logger.info(f"[Customers] Deleted {deleted} for merchant_id={merchant_id}")
    return deleted, missing


def list_customers(db: Session, merchant_id: int) -> List[Customer]:
    return db.query(Customer).filter(Customer.merchant_id == merchant_id).order_by(Customer.name.asc()).all()


async def find_customer(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    name: str,
    raw_params: Dict[str, Any],
) -> Customer:
    customer = await resolver.resolve_customer(db, merchant_id, name)
    if customer is None:
        suggestion = await resolver.suggest(db, merchant_id, name, KIND_CUSTOMER)
        raise NotFoundError(clarifications.customer_not_found(
            name, "get_customer", raw_params, suggestion=suggestion,
        ))
    return customer


def credit_purchase(customers: List[Customer], amount_paid: Decimal, when: Optional[datetime] = None) -> None:
    """Split amount_paid evenly across the sale's customers (caller commits)."""
    if not customers:
        return
    when = when or datetime.now(timezone.utc)
    share = (Decimal(amount_paid) / len(customers)).quantize(Decimal("0.01"))
    for customer in customers:
        customer.total_spent = Decimal(str(customer.total_spent or 0)) + share
        customer.last_purchase_date = when


def format_customer(customer: Customer) -> str:
    lines = [f"👤 {customer.name}"]
    if customer.phone:
        lines.append(f"Phone: {customer.phone}")
    if customer.email:
        lines.append(f"Email: {customer.email}")
    if customer.address:
        lines.append(f"Address: {customer.address}")
    if customer.tags:
        lines.append(f"Tags: {', '.join(customer.tags)}")
    lines.append(f"Total spent: {format_money(customer.total_spent)}")
    if customer.last_purchase_date:
        lines.append(f"Last purchase: {customer.last_purchase_date.strftime('%d %b %Y')}")
    return "\n".join(lines)


def format_customer_list(customers: List[Customer]) -> str:
    if not customers:
        return "You have no customers yet."
    lines = [f"Customers ({len(customers)}):"]
    for customer in customers:
        line = f"• {customer.name}"
        if customer.phone:
            line += f" ({customer.phone})"
        line += f" - spent {format_money(customer.total_spent)}"
        lines.append(line)
    return "\n".join(lines)
