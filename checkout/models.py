from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Phase(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    AWAITING_PAYMENT = "awaiting_payment"
    POLLING = "polling"
    PAID = "paid"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_PHASES = frozenset({Phase.PAID, Phase.FAILED, Phase.ABORTED})


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    quantity: int = Field(ge=1)
    price: Optional[int] = None  # cents per unit


class Order(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("id", "orderId"))
    total: int = Field(gt=0)                        # cents
    description: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    status: OrderStatus                             # pending | paid | failed
    payment_link: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payment_link", "link", "paymentLink"),
    )


class PaymentSession(BaseModel):
    """Read-only snapshot of one confirmation attempt, as published to subscribers."""

    model_config = ConfigDict(frozen=True)

    quantity: Optional[int] = None
    amount: Optional[int] = None                    # cents, quantity * unit price
    order: Optional[Order] = None
    phase: Phase = Phase.IDLE
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES
