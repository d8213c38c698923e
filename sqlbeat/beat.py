#!/usr/bin/env python3
"""
sqlbeat - periodic SQL queries turned into metric events

Flow:
- Load the YAML config; unsafe queries or undecryptable passwords abort startup
- Every `period` seconds run one polling cycle:
    * for each server: connect, run every query, disconnect
    * each result is turned into events by the query dispatcher
      (counter columns become per-second rates)
    * events are handed to the publisher one at a time
- Errors are contained at the smallest scope: a bad row skips the row, a
  failed query skips the query, an unreachable server skips the server
- SIGINT/SIGTERM let the in-flight query finish, then the loop exits
"""

import argparse
import asyncio
import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import peewee
import yaml
from pydantic import ValidationError

from .config import BeatConfig, OutputConfig, QueryConfig, ServerConfig, load_config_from
from .database import QueryExecutionError, connect_server, execute_query
from .metrics import MetricStateCache, QueryDispatcher, ResultShapeError
from .publishers import Publisher, create_publisher

logger = logging.getLogger("sqlbeat.beat")

DatabaseFactory = Callable[[ServerConfig], peewee.Database]


class SqlBeat:
    """Runs the configured queries on every server, once per polling cycle."""

    def __init__(
        self,
        config: BeatConfig,
        publisher: Publisher,
        database_factory: DatabaseFactory = connect_server,
        state: Optional[MetricStateCache] = None,
    ):
        self.config = config
        self.publisher = publisher
        self.database_factory = database_factory
        # Shared by every cycle and server for the lifetime of the process
        self.state = state if state is not None else MetricStateCache()
        self.markers = config.markers

        self._stop = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

        for server_id, server in config.servers.items():
            for number, query in enumerate(server.queries, start=1):
                logger.info("%s query #%d (type: %s): %s", server_id, number, query.type, query.query)

    # ---------- Polling cycle ----------

    def run_cycle(self) -> int:
        """Process every server once; returns the number of events published."""
        servers = list(self.config.servers.items())

        if self.config.parallel_servers and len(servers) > 1:
            with ThreadPoolExecutor(max_workers=len(servers), thread_name_prefix="sqlbeat") as pool:
                futures = [pool.submit(self._run_server, server_id, server) for server_id, server in servers]
                published = sum(future.result() for future in futures)
        else:
            published = sum(self._run_server(server_id, server) for server_id, server in servers)

        logger.info("Finished tick, %d events sent", published)
        return published

    def _run_server(self, server_id: str, server: ServerConfig) -> int:
        logger.info("Starting processing for server %s", server_id)
        try:
            published = self.process_server(server_id, server)
        except peewee.PeeweeException as e:
            logger.error("Error occurred when processing %s server, got: %s", server_id, e)
            return 0
        except Exception as e:
            logger.exception("unexpected error when processing %s server: %s", server_id, e)
            return 0

        logger.info("Finished for server %s", server_id)
        return published

    def process_server(self, server_id: str, server: ServerConfig) -> int:
        """
        Run every query of one server over a single connection.

        Raises:
            peewee.PeeweeException: the server could not be reached
        """
        database = self.database_factory(server)
        dispatcher = QueryDispatcher(server_id, self.state.for_server(server_id), self.publisher, self.markers)
        published = 0

        logger.info("Processing %d queries for %s server", len(server.queries), server_id)
        with database.connection_context():
            for number, query in enumerate(server.queries, start=1):
                if self._stop.is_set():
                    logger.info("stop requested, skipping remaining queries for %s", server_id)
                    break
                published += self.run_query(database, dispatcher, number, query)

        return published

    def run_query(self, database: peewee.Database, dispatcher: QueryDispatcher, number: int, query: QueryConfig) -> int:
        """Execute one query and dispatch its rows; failures only abort this query."""
        now = datetime.now(timezone.utc)
        try:
            with execute_query(database, query.query) as result:
                return dispatcher.dispatch(number, query.type, result.columns, result.rows(), now)
        except (QueryExecutionError, ResultShapeError) as e:
            logger.error("%s query #%d (type: %s) error: %s", dispatcher.server_id, number, query.type, e)
            return 0

    # ---------- Scheduling ----------

    async def run(self) -> None:
        """Run polling cycles every `period` seconds until stopped."""
        logger.info("sqlbeat is running! Hit CTRL-C to stop it.")
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or no signal support on this platform
                pass

        try:
            while not self._stop.is_set():
                started = self._loop.time()
                # Blocking database and HTTP calls run off the event loop
                await self._loop.run_in_executor(None, self.run_cycle)

                if self.config.once:
                    break

                delay = max(0.0, self.config.period - (self._loop.time() - started))
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.publisher.close()
            self._loop = None
            logger.info("sqlbeat stopped")

    def stop(self) -> None:
        """Ask the loop to exit once the in-flight query is done."""
        self._stop.set()
        if self._loop is not None and self._wakeup is not None:
            self._loop.call_soon_threadsafe(self._wakeup.set)


def main():
    parser = argparse.ArgumentParser(description="sqlbeat")
    parser.add_argument("--config", "-c", type=Path, default=Path("sqlbeat.yml"),
                        help="YAML configuration file (default: sqlbeat.yml)")
    parser.add_argument("--period",
                        help="time between polling cycles, e.g. 10s or 1m")
    parser.add_argument("--once", action="store_true",
                        help="run a single polling cycle and exit")
    parser.add_argument("--console", action="store_true",
                        help="print events to stdout instead of the configured output")
    parser.add_argument("--check", action="store_true",
                        help="validate the configuration and exit")
    parser.add_argument("--log-level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level")
    args = parser.parse_args()

    # Load config: YAML first, then CLI overrides
    try:
        config = load_config_from(args.config).override_with_args(args)
    except FileNotFoundError:
        raise SystemExit(f"ERROR: config file not found: {args.config}")
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        raise SystemExit(f"ERROR: invalid configuration in {args.config}:\n{e}")

    if args.console:
        config.output = OutputConfig(type="console")

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"sqlbeat starting with config: servers={len(config.servers)}, period={config.period}s")

    if args.check:
        queries = sum(len(server.queries) for server in config.servers.values())
        print(f"Config OK: {len(config.servers)} servers, {queries} queries")
        return

    beat = SqlBeat(config, create_publisher(config.output))
    try:
        asyncio.run(beat.run())
    except KeyboardInterrupt:
        print("\nInterrupted. Bye!")


if __name__ == "__main__":
    main()
