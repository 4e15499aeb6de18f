"""
Shared fixtures: an app bound to in-memory SQLite and small record builders.
"""

from datetime import date
from decimal import Decimal

import pytest

from haneen import create_app
from haneen.accounting import apply_contract_figures
from haneen.config import TestingConfig
from haneen.extensions import db
from haneen.models import CV, Contract, ExternalOffice, Order
from haneen.rates import RatesConfig

TODAY = date(2025, 6, 1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def rates() -> RatesConfig:
    return RatesConfig()


@pytest.fixture
def office(app) -> ExternalOffice:
    office = ExternalOffice(office_name="Addis Recruitment", country="ethiopia", code="ADD-01")
    db.session.add(office)
    db.session.flush()
    return office


@pytest.fixture
def make_cv(office):
    """Build a CV that is available on TODAY unless overridden."""

    def _make(passport="EP100", **overrides) -> CV:
        values = dict(
            worker_name="Almaz Tesfaye",
            passport_number=passport,
            nationality="ethiopia",
            profession="housemaid",
            external_office_id=office.id,
            internal_status="accepted",
            musaned_status="uploaded",
            external_office_status="ready",
            medical_exam_date=TODAY,
        )
        values.update(overrides)
        cv = CV(**values)
        db.session.add(cv)
        db.session.flush()
        return cv

    return _make


@pytest.fixture
def make_order(make_cv, rates):
    """Build an order (and its contract when a contract number is given)."""

    def _make(status="selected", contract_number="C-100", passport="EP100", commission="100",
              with_cv=True, **order_fields) -> Order:
        if with_cv and passport:
            make_cv(passport=passport)
        order = Order(
            client_name="Saleh Al-Harbi",
            nationality="ethiopia",
            profession="housemaid",
            passport_number=passport,
            worker_name="Almaz Tesfaye",
            contract_number=contract_number,
            order_status=status,
            **order_fields,
        )
        db.session.add(order)
        db.session.flush()
        if contract_number:
            contract = Contract(
                contract_number=contract_number,
                order_id=order.id,
                client_name=order.client_name,
                contract_date=order.contract_date,
                client_payment=Decimal("10000"),
                external_commission_usd=Decimal(commission),
            )
            apply_contract_figures(contract, rates)
            db.session.add(contract)
            db.session.flush()
        return order

    return _make
