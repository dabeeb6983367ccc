import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..core.units import TOKEN_SYMBOL, format_amount, from_atomic
from .base import BalanceProvider

logger = logging.getLogger(__name__)

ZERO_BALANCE = format_amount(Decimal("0"))


class AmadeusProvider(BalanceProvider):
    """Amadeus node REST provider for wallet balances"""

    name = "amadeus"
    timeout_s = 30

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout_s: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if rpc_url is None:
            from ..config import settings

            rpc_url = settings.rpc_url
            timeout_s = timeout_s or settings.request_timeout_seconds
        self.rpc_url = (rpc_url or "").rstrip("/")
        if timeout_s:
            self.timeout_s = timeout_s
        self._client = client

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Amadeus RPC URL not configured"}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.rpc_url, timeout=self.timeout_s)
            if response.status_code >= 500:
                return {"status": "error", "reason": f"HTTP {response.status_code}"}
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            response = await self._client.get(url, timeout=self.timeout_s)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, timeout=self.timeout_s)
        response.raise_for_status()
        return response

    async def get_balance(self, address: str, symbol: str = TOKEN_SYMBOL) -> str:
        """Fetch a wallet balance; returns ``"0.0000"`` when anything goes wrong."""
        if not await self.ready():
            logger.error("Balance lookup skipped: Amadeus RPC URL not configured")
            return ZERO_BALANCE

        try:
            response = await self._get(f"{self.rpc_url}/api/wallet/balance/{address}/{symbol}")
            data = response.json()
            atomic = data["balance"]["flat"]
            return format_amount(from_atomic(atomic))
        except Exception as e:
            logger.error(f"Error fetching balance for {address}: {e}")
            return ZERO_BALANCE
