import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import (
    install_exception_handlers,
    maintenance_router,
    order_router,
    payment_router,
    shipping_router,
    webhook_router,
)
from ordering.carrier import set_carrier
from ordering.carrier.fake_adapter import FakeCarrier
from ordering.gateway import set_gateway
from ordering.gateway.fake_adapter import FakeGateway


@pytest.fixture()
def client():
    app = FastAPI()
    install_exception_handlers(app)
    for router in (order_router, payment_router, shipping_router, webhook_router, maintenance_router):
        app.include_router(router)
    return TestClient(app)


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def carrier():
    fake = FakeCarrier()
    set_carrier(fake)
    return fake
