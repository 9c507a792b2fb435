import json
import logging
from typing import Any, Dict, List, Optional
import httpx
from nexbot.config.settings import TRADING_BACKEND_URL, TRADING_BACKEND_TIMEOUT
from nexbot.models.lookup import Lookup
from nexbot.models.trade import Holding, OrderRequest, OrderResult, Wallet

logger = logging.getLogger(__name__)


def _parse_portfolio(data: Any) -> List[Holding]:
    holdings = []
    for asset in data:
        coin = asset["coin"]
        holdings.append(Holding(
            coin_id=str(coin.get("id", "")),
            name=coin["name"],
            symbol=coin["symbol"],
            quantity=float(asset["quantity"]),
        ))
    return holdings


def _parse_wallet(data: Any) -> Wallet:
    return Wallet(id=data.get("id"), balance=float(data["balance"]))


def _as_list(data: Any) -> List[Dict]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list, got {type(data).__name__}")
    return data


def _upstream_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"Request failed with status code {response.status_code}"


class AccountGateway:
    """Client for the trading backend's user, wallet and order endpoints.

    Every call forwards the caller's ``Authorization`` header unchanged. Reads
    return ``Lookup.absent()`` on any transport, auth or payload failure.
    """

    def __init__(
        self,
        base_url: str = TRADING_BACKEND_URL,
        timeout: float = TRADING_BACKEND_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _get(self, path: str, credential: str, label: str, parse=None) -> Lookup:
        try:
            async with self._client() as client:
                response = await client.get(path, headers={"Authorization": credential})
                response.raise_for_status()
                data = response.json()
            return Lookup.present(parse(data) if parse else data)
        except httpx.HTTPError as e:
            logger.error(f"{label} fetch error: {e}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"{label} payload error: {e}")
        return Lookup.absent()

    async def get_profile(self, credential: str) -> Lookup[Dict]:
        return await self._get("/api/users/profile", credential, "Profile")

    async def get_portfolio(self, credential: str) -> Lookup[List[Holding]]:
        return await self._get("/api/assets", credential, "Portfolio", _parse_portfolio)

    async def get_wallet(self, credential: str) -> Lookup[Wallet]:
        return await self._get("/api/wallet", credential, "Wallet", _parse_wallet)

    async def get_order_history(self, credential: str) -> Lookup[List[Dict]]:
        return await self._get("/api/orders", credential, "Order history", _as_list)

    async def get_wallet_transactions(self, credential: str) -> Lookup[List[Dict]]:
        return await self._get("/api/wallet/transactions", credential, "Transactions", _as_list)

    async def submit_order(self, credential: str, order: OrderRequest) -> OrderResult:
        """Place an order once. The upstream error text is returned, never retried."""
        body = order.to_payload()
        logger.info(f"Submitting order: {json.dumps(body)}")
        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/orders/pay",
                    json=body,
                    headers={"Authorization": credential}
                )
        except httpx.HTTPError as e:
            logger.error(f"Order error: {e}")
            return OrderResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"Order response status: {response.status_code}")
        if response.is_success:
            try:
                data = response.json()
            except json.JSONDecodeError:
                data = None
            return OrderResult(success=True, data=data if isinstance(data, dict) else None)

        error = _upstream_error(response)
        logger.error(f"Order rejected: {error}")
        return OrderResult(success=False, error=error)
