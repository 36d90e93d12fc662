"""Gateways to the pricing and shop services.

`PriceGateway` and `ShopGateway` are the contracts the services depend on.
`PriceClient` and `ShopClient` implement them over HTTP with `requests`; tests
swap in in-memory fakes.

Every call carries the request's trace id. Calls that act on the caller's
behalf also forward the caller's Authorization header. No call is retried.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import requests
from pydantic import ValidationError

from context import RequestContext
from errors import InternalError, NotFoundError
from logger import get_logger
from schemas import Price, Prices, Shop

logger = get_logger(__name__)

PRICES_BASE_ENDPOINT = "/prices"
PRICES_ITEMS_PRICES = "/items"
SHOPS_BASE_ENDPOINT = "/shops"

DEFAULT_TIMEOUT = 5.0


class PriceGateway(ABC):
    """Pricing service contract."""

    @abstractmethod
    def get_price_by_item_id(self, ctx: RequestContext, item_id: str) -> Price:
        ...

    @abstractmethod
    def get_items_prices(self, ctx: RequestContext, item_ids: List[str]) -> Prices:
        """Bulk lookup. The result may hold fewer prices than ids requested."""
        ...

    @abstractmethod
    def create_price(self, ctx: RequestContext, price: Price) -> None:
        ...

    @abstractmethod
    def update_price(self, ctx: RequestContext, price: Price) -> None:
        ...

    @abstractmethod
    def delete_price(self, ctx: RequestContext, item_id: str) -> None:
        ...


class ShopGateway(ABC):
    """Shop ownership service contract."""

    @abstractmethod
    def get_shop_by_user_id(self, ctx: RequestContext) -> Shop:
        """Shop owned by the authenticated caller."""
        ...


class _RestClient:
    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    def _send(self, method: str, endpoint: str, headers: dict, action: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        try:
            return self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("downstream call failed", method=method, url=url, error=str(e))
            raise InternalError(f"unexpected error {action}, url: {endpoint}", e)


class PriceClient(_RestClient, PriceGateway):
    def get_price_by_item_id(self, ctx: RequestContext, item_id: str) -> Price:
        endpoint = f"{PRICES_BASE_ENDPOINT}/item/{item_id}"
        response = self._send("GET", endpoint, ctx.trace_headers(), "getting price")

        if response.status_code == 404:
            raise NotFoundError("price not found")
        if response.status_code != 200:
            raise InternalError(f"error getting price with state {response.status_code}, url: {endpoint}")

        try:
            return Price.model_validate_json(response.content)
        except ValidationError as e:
            raise InternalError(f"unexpected error unmarshalling price json response. value: {response.text}", e)

    def get_items_prices(self, ctx: RequestContext, item_ids: List[str]) -> Prices:
        endpoint = f"{PRICES_BASE_ENDPOINT}{PRICES_ITEMS_PRICES}"
        response = self._send("POST", endpoint, ctx.trace_headers(), "getting prices",
                              json={"items": list(item_ids)})

        if response.status_code == 404:
            raise NotFoundError("no price found")
        if response.status_code != 200:
            raise InternalError(f"error at prices service with state {response.status_code}, url: {endpoint}")
        if not response.content:
            raise NotFoundError("price not found")

        try:
            return Prices.model_validate_json(response.content)
        except ValidationError as e:
            raise InternalError(f"unexpected error unmarshalling prices json response. body: {response.text}", e)

    def create_price(self, ctx: RequestContext, price: Price) -> None:
        response = self._send("POST", PRICES_BASE_ENDPOINT, ctx.auth_headers(), "creating price",
                              json=price.model_dump(exclude={"id"}))

        if response.status_code != 201:
            raise InternalError(
                f"error creating price with state {response.status_code}, url: {PRICES_BASE_ENDPOINT}"
            )

    def update_price(self, ctx: RequestContext, price: Price) -> None:
        endpoint = f"{PRICES_BASE_ENDPOINT}/{price.id}"
        response = self._send("PUT", endpoint, ctx.auth_headers(), "updating price",
                              json=price.model_dump())

        if response.status_code == 404:
            raise NotFoundError("price not found")
        if response.status_code != 200:
            raise InternalError(f"error updating price with state {response.status_code}, url: {endpoint}")

    def delete_price(self, ctx: RequestContext, item_id: str) -> None:
        endpoint = f"{PRICES_BASE_ENDPOINT}/item/{item_id}"
        response = self._send("DELETE", endpoint, ctx.auth_headers(), "deleting price")

        if response.status_code == 404:
            raise NotFoundError("price not found")
        if response.status_code != 204:
            raise InternalError(f"error deleting price with state {response.status_code}, url: {endpoint}")


class ShopClient(_RestClient, ShopGateway):
    def get_shop_by_user_id(self, ctx: RequestContext) -> Shop:
        response = self._send("GET", SHOPS_BASE_ENDPOINT, ctx.auth_headers(), "getting shop")

        if response.status_code == 404:
            raise NotFoundError("shop not found")
        if response.status_code != 200:
            raise InternalError(
                f"error getting shop with state {response.status_code}, url: {SHOPS_BASE_ENDPOINT}"
            )

        try:
            return Shop.model_validate_json(response.content)
        except ValidationError as e:
            raise InternalError(f"unexpected error unmarshalling shop json response. value: {response.text}", e)
