import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout.gateway import OrderGateway
from checkout.logging_config import configure_logging
from checkout.routes import router
from checkout.session import PaymentSessionController

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.gateway = OrderGateway()
    app.state.controller = PaymentSessionController(app.state.gateway)
    yield
    # Never leave a poll task running past shutdown.
    await app.state.controller.aclose()
    logger.info("Checkout session closed on shutdown")


app = FastAPI(title="Order Checkout Service", lifespan=lifespan)

app.include_router(router)
