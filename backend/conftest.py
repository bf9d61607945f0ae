"""Shared fixtures: a fresh in-memory database per test."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import stockline.models  # noqa: F401 - register models
from nlu.groq_client import GroqClient
from nlu.intent_parser import parse_commands
from stockline.agent.registry import build_default_registry
from stockline.agent.router import CommandRouter
from stockline.db.base import Base
from stockline.db.session import enable_sqlite_foreign_keys
from stockline.models.customer import Customer
from stockline.models.merchant import Merchant
from stockline.models.product import Product
from stockline.services.entity_matcher import EntityResolver, SimilarityMatcher
from stockline.services.units import upsert_alternative_unit


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def merchant(db):
    m = Merchant(name="Mama Ada Provisions")
    db.add(m)
    db.commit()
    db.refresh(m)
    return m


@pytest.fixture
def resolver():
    return EntityResolver(SimilarityMatcher())


@pytest.fixture
def router():
    return CommandRouter(build_default_registry())


@pytest.fixture
def offline_parser():
    """Keyword parser only; never calls the LLM."""
    client = GroqClient(api_key="")
    return lambda text: parse_commands(text, client=client)


@pytest.fixture
def make_product(db, merchant):
    def _make(name, base_unit="piece", stock=0, price=None, cost=None, reorder=0, units=None):
        product = Product(
            merchant_id=merchant.id,
            name=name,
            base_unit_of_measure=base_unit,
            current_stock_in_base_units=stock,
            standard_selling_price_per_base_unit=price,
            cost_price_per_base_unit=cost,
            reorder_level=reorder,
        )
        for unit_name, factor in (units or {}).items():
            upsert_alternative_unit(product, unit_name, factor)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def make_customer(db, merchant):
    def _make(name, phone=None):
        customer = Customer(merchant_id=merchant.id, name=name, phone=phone, tags=[], total_spent=0)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer
    return _make
