from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from checkout.errors import InvalidStateError
from checkout.models import PaymentSession, Phase
from checkout.qr_code import link_to_image
from checkout.session import PaymentSessionController

DEFAULT_DESCRIPTION = "Brussels Matcha Tea"

router = APIRouter(prefix="/checkout")


class ConfirmRequest(BaseModel):
    quantity: int = Field(gt=0)
    description: Optional[str] = None


def get_controller(request: Request) -> PaymentSessionController:
    return request.app.state.controller


@router.post("/orders", status_code=202, response_model=PaymentSession)
async def confirm_order_api(payload: ConfirmRequest, request: Request):
    controller = get_controller(request)

    # A settled session is discarded; the buyer is starting over.
    if controller.phase in (Phase.PAID, Phase.FAILED):
        controller = PaymentSessionController(request.app.state.gateway)
        request.app.state.controller = controller

    try:
        await controller.confirm_order(payload.quantity, payload.description or DEFAULT_DESCRIPTION)
    except InvalidStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return controller.session


@router.get("/session", response_model=PaymentSession)
async def get_session(request: Request):
    return get_controller(request).session


@router.get("/session/qr")
def get_session_qr(request: Request):
    order = get_controller(request).session.order
    if order is None or not order.payment_link:
        raise HTTPException(status_code=404, detail="No payment link yet")

    return Response(content=link_to_image(order.payment_link), media_type="image/png")


@router.post("/session/abort", response_model=PaymentSession)
async def abort_session(request: Request):
    controller = get_controller(request)
    controller.abort()
    return controller.session
