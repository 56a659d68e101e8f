"""
Payment session controller.

Drives a single confirmation attempt: create the order, then poll its status
on a fixed interval until the provider reports a terminal status, the provider
becomes unreachable, or the caller aborts. Every transition is published to
subscribers as an immutable ``PaymentSession`` snapshot.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from checkout.config import get_polling_settings
from checkout.errors import ConfigurationError, GatewayError, InvalidStateError
from checkout.gateway import OrderGateway
from checkout.models import Order, OrderItem, OrderStatus, PaymentSession, Phase

logger = logging.getLogger(__name__)

Listener = Callable[[PaymentSession], None]


class PaymentSessionController:
    """Owns one ``PaymentSession`` and its polling task.

    ``poll_interval`` is the delay between two status checks (seconds).
    ``failure_limit`` is the number of consecutive failed checks that fail the
    session; the default of 1 makes the first transport error fatal.
    """

    def __init__(self, gateway: OrderGateway, poll_interval: Optional[float] = None,
                 failure_limit: Optional[int] = None, unit_price: Optional[int] = None):
        if poll_interval is None or failure_limit is None or unit_price is None:
            settings = get_polling_settings()
            poll_interval = settings.interval_s if poll_interval is None else poll_interval
            failure_limit = settings.failure_limit if failure_limit is None else failure_limit
            unit_price = settings.unit_price if unit_price is None else unit_price
        if poll_interval < 0:
            raise ValueError("poll_interval must not be negative")
        if failure_limit < 1:
            raise ValueError("failure_limit must be at least 1")

        self.gateway = gateway
        self.poll_interval = poll_interval
        self.failure_limit = failure_limit
        self.unit_price = unit_price

        self._session = PaymentSession()
        self._listeners: List[Listener] = []
        self._poll_task: Optional[asyncio.Task] = None
        # Bumped on every abort and terminal transition; stale ticks compare against it.
        self._generation = 0

    @property
    def session(self) -> PaymentSession:
        return self._session

    @property
    def phase(self) -> Phase:
        return self._session.phase

    @property
    def has_pending_timer(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def subscribe(self, on_change: Listener) -> Callable[[], None]:
        self._listeners.append(on_change)

        def unsubscribe():
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    async def confirm_order(self, quantity: int, description: Optional[str] = None,
                            items: Optional[List[OrderItem]] = None) -> None:
        """Create the order and start polling it.

        Returns once polling has started or the session has failed. Creation
        errors are not raised; they surface as the ``failed`` transition.
        """
        if self._session.phase not in (Phase.IDLE, Phase.ABORTED):
            logger.warning("Rejected confirmation: session is %s", self._session.phase.value)
            raise InvalidStateError(f"A confirmation is already {self._session.phase.value}")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f"quantity must be a positive integer, got {quantity!r}")

        self._generation += 1
        generation = self._generation
        total = quantity * self.unit_price
        self._publish(PaymentSession(quantity=quantity, amount=total, phase=Phase.CREATING))
        # Listeners may abort on any notification; re-check before each next step.
        if generation != self._generation:
            return

        try:
            order = await self.gateway.create_order(total, description=description, items=items)
        except (ConfigurationError, GatewayError) as e:
            if generation != self._generation:
                logger.info("Order creation failed after the session was aborted: %s", e)
                return
            logger.error("Error creating order: %s", e)
            self._finish(Phase.FAILED, error=str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error creating order")
            if generation == self._generation:
                self._finish(Phase.FAILED, error=f"Unexpected error creating order: {e}")
            return

        if generation != self._generation:
            logger.info("Order %s created after the session was aborted, ignoring it", order.id)
            return

        self._publish(self._session.model_copy(update={"order": order, "phase": Phase.AWAITING_PAYMENT}))
        if generation != self._generation:
            return
        self._publish(self._session.model_copy(update={"phase": Phase.POLLING}))
        if generation != self._generation:
            return
        self._poll_task = asyncio.create_task(self._poll(order.id, generation))

    def abort(self) -> None:
        """Stop polling and mark the session aborted. Safe to call repeatedly."""
        if self._session.is_terminal:
            self._stop_polling()
            return
        logger.info("Aborting payment session in phase %s", self._session.phase.value)
        self._finish(Phase.ABORTED)

    async def aclose(self) -> None:
        task = self._poll_task
        self.abort()
        if task is not None and task is not asyncio.current_task():
            await asyncio.wait({task})

    async def wait(self) -> PaymentSession:
        """Wait until no poll task is running and return the latest snapshot."""
        while self._poll_task is not None and not self._poll_task.done():
            await asyncio.wait({self._poll_task})
        return self._session

    async def _poll(self, order_id: int, generation: int) -> None:
        failures = 0
        try:
            while generation == self._generation:
                await asyncio.sleep(self.poll_interval)
                if generation != self._generation:
                    return

                try:
                    current = await self.gateway.fetch_status(order_id)
                except ConfigurationError as e:
                    if generation == self._generation:
                        logger.error("Order %s: configuration error while polling: %s", order_id, e)
                        self._finish(Phase.FAILED, error=str(e))
                    return
                except GatewayError as e:
                    if generation != self._generation:
                        return
                    failures += 1
                    if failures < self.failure_limit:
                        logger.warning("Order %s: status check failed (%s/%s): %s",
                                       order_id, failures, self.failure_limit, e)
                        continue
                    logger.error("Order %s: error polling order status: %s", order_id, e)
                    self._finish(Phase.FAILED, error=str(e))
                    return
                except Exception as e:
                    logger.exception("Order %s: unexpected error polling order status", order_id)
                    if generation == self._generation:
                        self._finish(Phase.FAILED, error=f"Unexpected error polling order status: {e}")
                    return

                if generation != self._generation:
                    return
                failures = 0
                self._apply(current)
        except asyncio.CancelledError:
            logger.debug("Order %s: polling cancelled", order_id)
            raise

    def _apply(self, current: Order) -> None:
        created = self._session.order
        if created is not None:
            current = current.model_copy(update={"payment_link": created.payment_link})

        if current.status is OrderStatus.PAID:
            logger.info("Order %s paid", current.id)
            self._finish(Phase.PAID, order=current)
        elif current.status is OrderStatus.FAILED:
            logger.info("Order %s failed at the provider", current.id)
            self._finish(Phase.FAILED, order=current, error="Payment failed")
        else:
            self._publish(self._session.model_copy(update={"order": current}))

    def _finish(self, phase: Phase, **changes) -> None:
        self._stop_polling()
        self._publish(self._session.model_copy(update={"phase": phase, **changes}))

    def _stop_polling(self) -> None:
        self._generation += 1
        task, self._poll_task = self._poll_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _publish(self, session: PaymentSession) -> None:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener %r failed", listener)
