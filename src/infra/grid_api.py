"""
Grid API client.

Async HTTP client for the remote grid store (Plotly /v2 API) via httpx:
- verify_user: identity check for a username
- create_grid: upload a new grid from query results
- update_grid: replace the column data of an existing grid
- get_grid_meta: fetch grid metadata (used to confirm deletions)

Every call returns a GridResponse with the raw status and body; deciding
what a status means is the caller's job. Transport errors propagate.
"""

import base64
import json
import logging
import uuid
from typing import Any, Callable, Optional

import httpx

from src import __version__
from src.infra.settings import get_grid_api_timeout, get_plotly_api_url
from src.scheduler.entities import Credentials, GridResponse

logger = logging.getLogger(__name__)

CLIENT_PLATFORM = "db-connect"


def get_columns(rows: list[list[Any]], column_count: int) -> list[list[Any]]:
    """
    Transpose rows into columns.

    Short rows are padded with None so every column has len(rows) cells.
    """
    return [
        [row[i] if i < len(row) else None for row in rows]
        for i in range(column_count)
    ]


def build_authorization(credentials: Credentials) -> str:
    """Bearer header for an access token, HTTP Basic for username + API key."""
    if credentials.access_token:
        return f"Bearer {credentials.access_token}"
    token = f"{credentials.username}:{credentials.api_key}".encode("utf-8")
    return "Basic " + base64.b64encode(token).decode("ascii")


class GridApiClient:
    """
    Client for the grid store.

    Args:
        get_credentials: Lookup from requestor/username to Credentials
        base_url: API base URL (defaults to PLOTLY_API_URL)
        timeout: Request timeout in seconds (defaults to GRID_API_TIMEOUT_SECONDS)
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        get_credentials: Callable[[str], Credentials],
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._get_credentials = get_credentials
        self.base_url = (base_url or get_plotly_api_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_grid_api_timeout()
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        credentials: Credentials,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> GridResponse:
        url = f"{self.base_url}/v2/{path}"
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Plotly-Client-Platform": CLIENT_PLATFORM,
            "User-Agent": f"GridSync/{__version__}",
            "Authorization": build_authorization(credentials),
        }

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=body,
                params=params,
            )

        logger.debug(f"[GridAPI] {method} {path} -> {response.status_code}")
        return GridResponse(status=response.status_code, body=response.text)

    async def verify_user(self, username: str) -> GridResponse:
        """GET users/current with the stored credentials for username."""
        credentials = self._get_credentials(username)
        return await self._request("GET", "users/current", credentials)

    async def create_grid(
        self,
        filename: str,
        column_names: list[str],
        rows: list[list[Any]],
        requestor: str,
    ) -> GridResponse:
        """
        POST a new grid.

        A short random suffix keeps repeated uploads of the same filename
        from colliding on the remote store.
        """
        credentials = self._get_credentials(requestor)
        columns = get_columns(rows, len(column_names))
        cols = {
            name: {"data": columns[i], "order": i}
            for i, name in enumerate(column_names)
        }
        body = {
            "data": {"cols": cols},
            "world_readable": True,
            "parent": -1,
            "filename": f"{filename} - {uuid.uuid4().hex[:5]}",
        }
        return await self._request("POST", "grids", credentials, body=body)

    async def update_grid(
        self,
        rows: list[list[Any]],
        fid: str,
        uids: list[str],
        requestor: str,
    ) -> GridResponse:
        """PUT fresh column data into the columns addressed by uids."""
        credentials = self._get_credentials(requestor)
        columns = get_columns(rows, len(uids))
        body = {"cols": json.dumps([{"data": column} for column in columns])}
        return await self._request(
            "PUT",
            f"grids/{fid}/col",
            credentials,
            body=body,
            params={"uid": ",".join(uids)},
        )

    async def get_grid_meta(self, fid: str, username: str) -> GridResponse:
        """GET grid metadata, including the "deleted" flag."""
        credentials = self._get_credentials(username)
        return await self._request("GET", f"grids/{fid}", credentials)
