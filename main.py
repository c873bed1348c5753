"""
Grid sync scheduler - command line entry point.

Commands:
  serve           Run the HTTP API (timers run inside the server's event loop)
  run             Re-arm persisted queries and run until SIGINT/SIGTERM
  add-user        Store grid API credentials for a user
  add-connection  Check and register a data source connection
  list            Print stored queries
  tables          Print the tables of a registered connection
  schemas         Print table, column and type of a registered connection
"""

import argparse
import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

from src.connectors import ConnectorError, get_connector
from src.infra.logging_config import setup_logging
from src.infra.settings import get_db_path, get_log_dir, get_log_level
from src.scheduler import (
    Connection,
    ConnectionNotFoundError,
    Credentials,
    PersistenceAdapter,
    QueryScheduler,
)


load_dotenv()

logger = logging.getLogger("grid_sync")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Periodically re-run queries and push the results to remote grids",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the API server
  python main.py serve --port 9494

  # Run stored queries without the API
  python main.py run

  # Register a SQLite connection and a user
  python main.py add-connection local --dialect sqlite --database ./data/sales.db
  python main.py add-user alice --api-key XXXXXXXX
        """
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="SQLite database path. Default: SCHEDULER_DB_PATH or ./data/scheduler.db"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=9494)

    subparsers.add_parser("run", help="Run persisted queries until interrupted")

    add_user = subparsers.add_parser("add-user", help="Store grid API credentials")
    add_user.add_argument("username")
    add_user.add_argument("--api-key", default=None)
    add_user.add_argument("--access-token", default=None)

    add_connection = subparsers.add_parser("add-connection", help="Check and register a connection")
    add_connection.add_argument("connection_id")
    add_connection.add_argument("--dialect", required=True, choices=["sqlite", "dataworld"])
    add_connection.add_argument("--database", default=None, help="SQLite database file")
    add_connection.add_argument("--url", default=None, help="data.world dataset URL")
    add_connection.add_argument("--token", default=None, help="data.world API token")

    subparsers.add_parser("list", help="Print stored queries")

    for name, help_text in (
        ("tables", "Print the tables of a connection"),
        ("schemas", "Print the columns of every table of a connection"),
    ):
        browse = subparsers.add_parser(name, help=help_text)
        browse.add_argument("connection_id")

    return parser.parse_args(argv)


async def run_scheduler(db_path) -> None:
    """Arm every persisted query and wait for a shutdown signal."""
    scheduler = QueryScheduler.create(db_path)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop.set))

    armed = scheduler.load_persisted_jobs()
    logger.info(f"Scheduler running with {armed} queries")

    await stop.wait()

    logger.info("Shutdown requested - cancelling timers")
    scheduler.unschedule_all()
    await scheduler.timers.wait_for_ticks()


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(get_log_level(), get_log_dir())
    db_path = args.db_path or get_db_path()

    if args.command == "serve":
        import os
        import uvicorn

        os.environ["SCHEDULER_DB_PATH"] = str(db_path)
        uvicorn.run("src.api.main:app", host=args.host, port=args.port)
        return 0

    if args.command == "run":
        asyncio.run(run_scheduler(db_path))
        return 0

    persistence = PersistenceAdapter(db_path)

    if args.command == "add-user":
        if not (args.api_key or args.access_token):
            logger.error("Provide --api-key or --access-token")
            return 1
        persistence.save_credentials(Credentials(
            username=args.username,
            api_key=args.api_key,
            access_token=args.access_token,
        ))
        logger.info(f"Saved credentials for {args.username}")

    elif args.command == "add-connection":
        connection = Connection(
            connection_id=args.connection_id,
            dialect=args.dialect,
            database=args.database,
            url=args.url,
            token=args.token,
        )
        try:
            get_connector(connection.dialect).connect(connection)
        except ConnectorError as e:
            logger.error(f"Could not connect to {args.connection_id}: {e}")
            return 1
        persistence.save_connection(connection)
        logger.info(f"Saved connection {args.connection_id} ({args.dialect})")

    elif args.command == "list":
        for job in persistence.list_queries():
            print(
                f"{job.fid}\tevery {job.refresh_interval}s\t"
                f"{job.connection_id}\t{job.requestor}\t{job.query}"
            )

    elif args.command in ("tables", "schemas"):
        try:
            connection = persistence.get_connection(args.connection_id)
            connector = get_connector(connection.dialect)
            if args.command == "tables":
                for table in connector.tables(connection):
                    print(table)
            else:
                for row in connector.schemas(connection).rows:
                    print("\t".join(str(value) for value in row))
        except (ConnectionNotFoundError, ConnectorError) as e:
            logger.error(str(e))
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
