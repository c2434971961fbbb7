import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storefront.api import fulfillment_router, install_exception_handlers, store_router, webhook_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(store_router)
    app.include_router(webhook_router)
    app.include_router(fulfillment_router)
    install_exception_handlers(app)
    return TestClient(app)
