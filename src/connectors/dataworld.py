"""
data.world connector.

connection.url is a dataset URL (https://data.world/<owner>/<id>) and
connection.token is the data.world API token.

The SQL endpoint returns a JSON array whose first element carries the
table schema ("fields") and whose remaining elements are row objects.
"""

import logging
from urllib.parse import urlparse

import httpx

from src import __version__
from src.scheduler.entities import Connection, QueryResult

from .errors import ConnectorError

logger = logging.getLogger(__name__)

DATAWORLD_API_URL = "https://api.data.world/v0"
DATAWORLD_TIMEOUT_SECONDS = 60
SCHEMA_COLUMNS = ["tablename", "column_name", "data_type"]


def parse_url(dataset_url: str) -> tuple[str, str]:
    """Split a dataset URL into (owner, id)."""
    parts = urlparse(dataset_url).path.strip("/").split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ConnectorError(f"Invalid data.world dataset URL: {dataset_url}")
    return parts[0], parts[1]


def _headers(connection: Connection) -> dict:
    return {
        "Authorization": f"Bearer {connection.token}",
        "Content-Type": "application/x-www-form-urlencoded;charset=UTF-8",
        "User-Agent": f"GridSync/{__version__}",
    }


def connect(connection: Connection) -> None:
    """
    Check that the dataset is reachable with the token.

    Raises:
        ConnectorError: If data.world reports an error code
    """
    owner, dataset_id = parse_url(connection.url or "")
    try:
        with httpx.Client(timeout=DATAWORLD_TIMEOUT_SECONDS) as client:
            response = client.get(
                f"{DATAWORLD_API_URL}/datasets/{owner}/{dataset_id}/",
                headers=_headers(connection),
            )
            payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ConnectorError(f"data.world request failed: {e}") from e

    # "code" is only present on errors
    if isinstance(payload, dict) and payload.get("code"):
        raise ConnectorError(f"data.world error {payload['code']}: {payload.get('message', '')}")


def query(query_string: str, connection: Connection) -> QueryResult:
    """Run a SQL query against the dataset."""
    owner, dataset_id = parse_url(connection.url or "")
    # data.world table names use underscores where the UI shows hyphens
    statement = query_string.replace("-", "_")

    try:
        with httpx.Client(timeout=DATAWORLD_TIMEOUT_SECONDS) as client:
            response = client.post(
                f"{DATAWORLD_API_URL}/sql/{owner}/{dataset_id}",
                params={"includeTableSchema": "true"},
                headers=_headers(connection),
                data={"query": statement},
            )
            payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ConnectorError(f"data.world request failed: {e}") from e

    if isinstance(payload, dict):
        raise ConnectorError(
            f"data.world error {payload.get('code', response.status_code)}: "
            f"{payload.get('message', '')}"
        )
    if not payload:
        raise ConnectorError("data.world returned an empty response")

    try:
        column_names = [field["name"] for field in payload[0]["fields"]]
    except (KeyError, TypeError) as e:
        raise ConnectorError(f"data.world response has no table schema: {e}") from e

    rows = [list(row.values()) for row in payload[1:]]
    return QueryResult(column_names=column_names, rows=rows)


def tables(connection: Connection) -> list[str]:
    """List table names in the dataset."""
    result = query("SELECT * FROM Tables", connection)
    return [row[0] for row in result.rows]


def schemas(connection: Connection) -> QueryResult:
    """
    List every column of every table in the dataset.

    TableColumns rows carry the table name at index 0, the column name at
    index 3 and an XMLSchema datatype URL at index 6, e.g.
    http://www.w3.org/2001/XMLSchema#integer.
    """
    result = query("SELECT * FROM TableColumns", connection)
    rows = [
        [row[0], row[3], urlparse(str(row[6])).fragment]
        for row in result.rows
    ]
    return QueryResult(column_names=list(SCHEMA_COLUMNS), rows=rows)
