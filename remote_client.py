"""Remote Table Client for Care Sync Service.

Thin async client for the Supabase REST (PostgREST) interface. Only the two
calls the reconciliation engine needs are provided: select every row owned
by a user and upsert a batch of rows.

Errors are raised, not swallowed. Callers decide whether a failure matters.
"""

from typing import Any, Dict, List, Optional

import httpx

from config import settings
from logger_config import setup_logger

logger = setup_logger(__name__, 'remote.log')


class RemoteTableError(Exception):
    """A remote table request was rejected or could not be made."""

    def __init__(self, table: str, status_code: Optional[int], detail: str):
        self.table = table
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{table}: {status_code} {detail}")


class RemoteTableClient:
    """Async PostgREST client.

    Args:
        base_url: Supabase project URL (without /rest/v1)
        api_key: Key sent as `apikey` and bearer token
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (settings.SUPABASE_URL if base_url is None else base_url).rstrip("/")
        self.api_key = settings.SUPABASE_KEY if api_key is None else api_key
        self.timeout = settings.REMOTE_TIMEOUT if timeout is None else timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    def _check(self, table: str, response: httpx.Response) -> None:
        if response.status_code >= 300:
            logger.error(
                f"Remote table {table} rejected request. "
                f"Status: {response.status_code}, Response: {response.text}"
            )
            raise RemoteTableError(table, response.status_code, response.text)

    async def select_where(self, table: str, field: str, value: str) -> List[Dict[str, Any]]:
        """Select all rows of `table` whose `field` equals `value`.

        Raises:
            RemoteTableError: Client not configured or non-2xx response
            httpx.HTTPError: Network failure or timeout
        """
        if not self.configured:
            raise RemoteTableError(table, None, "remote table client is not configured")

        async with self._client() as client:
            response = await client.get(f"/{table}", params={field: f"eq.{value}", "select": "*"})
        self._check(table, response)
        rows = response.json()
        logger.info(f"Fetched {len(rows)} row(s) from {table} for {field}={value}")
        return rows

    async def upsert_many(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "item_id") -> None:
        """Insert or update `rows` in a single request, keyed by `on_conflict`.

        Does nothing when `rows` is empty.

        Raises:
            RemoteTableError: Client not configured or non-2xx response
            httpx.HTTPError: Network failure or timeout
        """
        if not rows:
            return
        if not self.configured:
            raise RemoteTableError(table, None, "remote table client is not configured")

        async with self._client() as client:
            response = await client.post(
                f"/{table}",
                params={"on_conflict": on_conflict},
                json=rows,
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            )
        self._check(table, response)
        logger.info(f"Upserted {len(rows)} row(s) into {table}")
