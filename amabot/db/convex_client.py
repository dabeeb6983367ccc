"""
Convex client for interacting with the Convex database from Python.

This client provides async methods to call Convex queries and mutations via
the Convex HTTP API.
"""

import httpx
from typing import Any, Dict, Optional

from ..config import settings


class ConvexError(Exception):
    """Base exception for Convex errors."""
    pass


class ConvexAuthError(ConvexError):
    """Authentication error when calling Convex."""
    pass


class ConvexQueryError(ConvexError):
    """Error executing a Convex query."""
    pass


class ConvexMutationError(ConvexError):
    """Error executing a Convex mutation."""
    pass


class ConvexClient:
    """
    Async client for interacting with Convex from Python.

    Example usage:
        client = ConvexClient(
            deployment_url="https://your-deployment.convex.cloud",
            deploy_key="prod:your-deploy-key"
        )

        # Query
        account = await client.query("accounts:getByUserId", {"userId": "..."})

        # Mutation
        await client.mutation("accounts:setBalance", {"userId": "...", "balance": "12.5"})
    """

    def __init__(
        self,
        deployment_url: Optional[str] = None,
        deploy_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.deployment_url = deployment_url or settings.convex_url
        self.deploy_key = deploy_key or settings.convex_deploy_key
        self.timeout = timeout
        self._transport = transport

        if not self.deployment_url:
            raise ConvexError("CONVEX_URL is required")

        # Remove trailing slash if present
        self.deployment_url = self.deployment_url.rstrip("/")

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        """Get headers for Convex API requests."""
        headers = {"Content-Type": "application/json"}
        if self.deploy_key:
            headers["Authorization"] = f"Convex {self.deploy_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _call(
        self,
        kind: str,
        function_name: str,
        args: Optional[Dict[str, Any]],
        error_cls: type,
    ) -> Any:
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.deployment_url}/api/{kind}",
                json={
                    "path": function_name,
                    "args": args or {},
                },
            )

            if response.status_code == 401:
                raise ConvexAuthError("Invalid or missing deploy key")

            response.raise_for_status()
            data = response.json()

            if data.get("status") == "error" or "error" in data:
                raise error_cls(data.get("errorMessage") or data.get("error"))

            return data.get("value")

        except httpx.HTTPStatusError as e:
            raise error_cls(f"{kind.title()} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise error_cls(f"Request failed: {str(e)}") from e

    async def query(
        self,
        function_name: str,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute a Convex query function.

        Args:
            function_name: The query function path (e.g., "accounts:getByUserId")
            args: Arguments to pass to the query function

        Returns:
            The query result

        Raises:
            ConvexQueryError: If the query fails
        """
        return await self._call("query", function_name, args, ConvexQueryError)

    async def mutation(
        self,
        function_name: str,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute a Convex mutation function.

        Args:
            function_name: The mutation function path (e.g., "accounts:create")
            args: Arguments to pass to the mutation function

        Returns:
            The mutation result (usually the created/updated ID)

        Raises:
            ConvexMutationError: If the mutation fails
        """
        return await self._call("mutation", function_name, args, ConvexMutationError)
