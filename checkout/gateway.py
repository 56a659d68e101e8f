import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from checkout.config import GatewayConfig, get_gateway_config, get_http_timeout
from checkout.errors import GatewayError
from checkout.models import Order, OrderItem

logger = logging.getLogger(__name__)


class OrderGateway:
    """Thin request/response wrapper around the payment provider's order API.

    Configuration is resolved on every call and nothing is retried here; the
    session controller decides what a failure means.
    """

    def __init__(self, config_loader=get_gateway_config, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: Optional[float] = None):
        self._config_loader = config_loader
        self._transport = transport
        self._timeout = timeout

    async def create_order(self, total: int, description: Optional[str] = None,
                           items: Optional[List[OrderItem]] = None) -> Order:
        if isinstance(total, bool) or not isinstance(total, int) or total <= 0:
            raise ValueError(f"total must be a positive amount in cents, got {total!r}")

        config = self._config_loader()

        body: Dict[str, Any] = {"total": total}
        if description is not None:
            body["description"] = description
        if items:
            body["items"] = [item.model_dump(exclude_none=True) for item in items]

        data = await self._request(config, "POST", f"/api/v1/places/{config.place_id}/orders", json=body)

        payload = {
            "total": total,
            "description": description,
            "items": items or [],
            "status": "pending",
            **data,
        }
        order = self._parse(payload, "createOrder")
        if not order.payment_link:
            logger.error("createOrder response for order %s has no payment link", order.id)
            raise GatewayError("Failed to create order: provider returned no payment link")

        logger.info("Order %s created, total=%s, link=%s", order.id, order.total, order.payment_link)
        return order

    async def fetch_status(self, order_id: int) -> Order:
        config = self._config_loader()
        data = await self._request(config, "GET", f"/api/v1/orders/{order_id}")
        order = self._parse(data, "getOrder")
        logger.debug("Order %s status: %s", order.id, order.status.value)
        return order

    async def _request(self, config: GatewayConfig, method: str, path: str, json=None) -> Dict[str, Any]:
        timeout = self._timeout if self._timeout is not None else get_http_timeout()
        headers = {"X-API-Key": config.api_key, "Accept": "application/json"}

        try:
            async with httpx.AsyncClient(base_url=config.base_url, headers=headers, timeout=timeout,
                                         transport=self._transport) as client:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Timeout calling %s %s: %s", method, path, e)
            raise GatewayError(f"Timeout querying payment provider: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error("Provider answered %s to %s %s", e.response.status_code, method, path)
            raise GatewayError(f"Payment provider returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Network error calling %s %s: %s", method, path, e)
            raise GatewayError(f"Network error querying payment provider: {e}") from e
        except ValueError as e:
            logger.error("Invalid JSON from %s %s: %s", method, path, e)
            raise GatewayError("Payment provider returned invalid JSON") from e

        if not isinstance(data, dict):
            logger.error("Unexpected payload from %s %s: %r", method, path, data)
            raise GatewayError("Payment provider returned an unexpected payload")
        return data

    @staticmethod
    def _parse(data: Dict[str, Any], operation: str) -> Order:
        try:
            return Order.model_validate(data)
        except ValidationError as e:
            logger.error("Malformed %s response: %s", operation, e)
            raise GatewayError(f"Malformed {operation} response from payment provider") from e
