"""HTTP client for the external trade execution service."""

import logging

import httpx
import orjson

from pulse_core.models import TradeRequest

logger = logging.getLogger(__name__)


class ExecutionServiceClient:
    """
    Submits trade requests to the execution service.

    The service owns everything venue specific (routing, instruction
    building, signing); this client only posts the semantic request and
    reads back confirmation identifiers.

    Wire contract:
        POST {base_url}/trades   body: TradeRequest JSON
        200 -> {"signatures": ["..."]}   ("ids" is accepted as well)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def submit(self, request: TradeRequest) -> list[str]:
        """
        Submit a trade request.

        Returns:
            Confirmation identifiers (e.g. transaction signatures)

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response
            ValueError: If the response carries no confirmation ids
        """
        client = await self._get_client()
        response = await client.post(
            "/trades",
            content=orjson.dumps(request.model_dump(mode="json")),
        )
        response.raise_for_status()

        data = orjson.loads(response.content)
        ids = data.get("signatures", data.get("ids")) if isinstance(data, dict) else None
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise ValueError(f"Malformed execution response: {data!r}")

        logger.debug(f"Execution service accepted {request.client_order_id}: {ids}")
        return ids
