from abc import ABC, abstractmethod
from typing import Any, Dict


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class BalanceProvider(Provider):
    """Provider for on-chain wallet balances"""

    @abstractmethod
    async def get_balance(self, address: str, symbol: str = "AMA") -> str:
        """Return the balance as a decimal string with four places.

        Implementations never raise; any failure reads as ``"0.0000"``.
        """
        pass
