import httpx
import logging
from typing import List, Dict, Any, Optional, Protocol

from yardmaster.core.config import settings
from yardmaster.schemas.store import Table

logger = logging.getLogger(__name__)


class StoreClientError(Exception):
    """Custom exception for table store errors"""
    pass


class StoreRateLimitedError(StoreClientError):
    """The store refused the request because of its rate limit."""
    pass


class TableNotFoundError(StoreClientError):
    pass


class TableStore(Protocol):
    """Contract of the external table store consumed by the engine."""

    async def read_table(self, name: str) -> Table: ...

    async def append_rows(self, name: str, rows: List[Dict[str, Any]]) -> int: ...

    async def update_row(self, name: str, row_index: int, row: Dict[str, Any]) -> None: ...


class SheetStoreClient:
    """
    A client for the spreadsheet-backed table store.
    Tables are header-driven: the first row of every sheet names the fields.
    """

    def __init__(self, base_url: str = None, api_key: Optional[str] = None, timeout: int = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the store client.

        Args:
            base_url: Base URL of the store API
            api_key: Optional API key sent as a bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (for testing)
        """
        self.base_url = base_url or settings.STORE_BASE_URL
        self.api_key = api_key if api_key is not None else settings.STORE_API_KEY
        self.timeout = timeout or settings.STORE_TIMEOUT
        self._transport = transport

        if not self.base_url:
            raise ValueError("Store base URL is required")

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Make an HTTP request to the store API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments to pass to the request

        Returns:
            JSON response from the API

        Raises:
            StoreClientError: If the request fails
        """
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        headers = kwargs.pop('headers', {})
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"Store API error ({e.response.status_code}): {e.response.text}"
            logger.error(error_msg)
            if e.response.status_code == 429:
                raise StoreRateLimitedError(error_msg)
            if e.response.status_code == 404:
                raise TableNotFoundError(error_msg)
            raise StoreClientError(error_msg)
        except (httpx.HTTPError, ValueError) as e:
            error_msg = f"Error making request to store API: {str(e)}"
            logger.error(error_msg)
            raise StoreClientError(error_msg)

        if isinstance(body, dict) and body.get('success') is False:
            error_msg = f"Store API rejected {method} {endpoint}: {body.get('error', 'unknown error')}"
            logger.error(error_msg)
            raise StoreClientError(error_msg)
        return body

    async def read_table(self, name: str) -> Table:
        """
        Read a whole table.

        Args:
            name: Table (sheet) name

        Returns:
            Table with headers and header-keyed rows
        """
        body = await self._make_request('GET', f"data/{name}")
        records = body.get('data') or []
        headers = body.get('headers') or (list(records[0].keys()) if records else [])
        logger.debug("Read %d rows from %s", len(records), name)
        return Table.from_records(name, headers, records)

    async def append_rows(self, name: str, rows: List[Dict[str, Any]]) -> int:
        """Append rows in a single batch write, returns the number of rows sent."""
        if not rows:
            return 0
        await self._make_request('POST', f"data/{name}/rows", json={'rows': rows})
        return len(rows)

    async def update_row(self, name: str, row_index: int, row: Dict[str, Any]) -> None:
        """Overwrite one row, ``row_index`` is 0-based over the data rows."""
        await self._make_request('PUT', f"data/{name}/rows/{row_index}", json={'row': row})
