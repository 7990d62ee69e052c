"""
Graph store session and schema initialization.

Provides:
- GraphSession: the one shared handle to Neo4j for a process, wrapping a
  single AsyncDriver and its connection pool
- open_graph_session(): scoped acquisition, closing the driver on every exit path
- ensure_schema(): idempotent constraints and indexes, safe on every startup

Writes go through explicit transactions (begin/commit/rollback) so the driver
never retries a batch behind the caller's back. Reads borrow a short-lived
read-access session from the pool, so concurrent callers never share one
driver session object.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncTransaction, READ_ACCESS
from neo4j.exceptions import ServiceUnavailable, SessionExpired, TransientError

from .config import Config
from .settings import GraphSettings, get_graph_settings

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT wine_id IF NOT EXISTS FOR (w:Wine) REQUIRE w.id IS UNIQUE",
    "CREATE CONSTRAINT country_name IF NOT EXISTS FOR (c:Country) REQUIRE c.name IS UNIQUE",
    "CREATE INDEX province_name IF NOT EXISTS FOR (p:Province) ON (p.name)",
    "CREATE INDEX person_name IF NOT EXISTS FOR (p:Person) ON (p.name)",
    (
        f"CREATE FULLTEXT INDEX {Config.FULLTEXT_INDEX} IF NOT EXISTS "
        "FOR (w:Wine) ON EACH [w.title, w.description, w.variety]"
    ),
]


class GraphSession:
    """
    Process-wide handle to the graph store.

    Owned by whoever opened it (the ingestion orchestrator, or the API
    lifespan) and injected into every operation.
    """

    def __init__(self, driver: AsyncDriver, database: Optional[str] = None):
        self._driver = driver
        self.database = database

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncTransaction]:
        """Explicit write transaction with commit on success, rollback otherwise."""
        async with self._driver.session(database=self.database) as session:
            tx = await session.begin_transaction()
            try:
                yield tx
                await tx.commit()
            except BaseException:
                if not tx.closed():
                    await tx.rollback()
                raise

    async def execute(self, query: str, parameters: Optional[dict[str, Any]] = None) -> None:
        """Run a single auto-commit statement (schema commands)."""
        async with self._driver.session(database=self.database) as session:
            result = await session.run(query, parameters or {})
            await result.consume()

    async def run_read(self, query: str, parameters: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """
        Run a read-only query and return records as dicts.

        Args:
            query: Parameterized Cypher query
            parameters: Named parameters

        Returns:
            List of record dictionaries in result order
        """
        async with self._driver.session(database=self.database, default_access_mode=READ_ACCESS) as session:
            result = await session.run(query, parameters or {})
            return [record.data() async for record in result]

    async def health_check(self) -> dict:
        """
        Verify connectivity and database access.

        Returns:
            dict with status and message
        """
        try:
            await self._driver.verify_connectivity()
            records = await self.run_read("RETURN 1 AS test")
            if records and records[0].get("test") == 1:
                return {"status": "healthy", "message": "Graph store connection is healthy"}
            return {"status": "unhealthy", "message": "Graph store returned unexpected result"}
        except Exception as e:
            logger.error(f"Graph health check failed: {e}")
            return {"status": "unhealthy", "message": "Graph store unreachable"}


@asynccontextmanager
async def open_graph_session(settings: Optional[GraphSettings] = None) -> AsyncIterator[GraphSession]:
    """
    Open the shared graph session for the lifetime of the block.

    Usage:
        async with open_graph_session() as graph:
            await ensure_schema(graph)
    """
    settings = settings or get_graph_settings()
    logger.info(f"Connecting to graph store: {settings.uri} (database: {settings.database})")
    logging.getLogger("neo4j").setLevel(logging.WARNING)

    driver = AsyncGraphDatabase.driver(
        settings.uri,
        auth=settings.auth,
        max_connection_pool_size=settings.max_connection_pool_size,
        connection_timeout=settings.connection_timeout,
    )
    try:
        await driver.verify_connectivity()
        yield GraphSession(driver, settings.database)
    finally:
        await driver.close()
        logger.info("Graph store connection closed")


async def ensure_schema(graph: GraphSession) -> None:
    """
    Create required constraints and indexes if missing.

    Every statement is IF NOT EXISTS, so this is safe to call on every run.
    """
    for statement in SCHEMA_STATEMENTS:
        await graph.execute(statement)
        logger.debug(f"Schema: {statement[:60]}...")
    logger.info(f"Schema ensured ({len(SCHEMA_STATEMENTS)} constraints/indexes)")


async def graph_stats(graph: GraphSession) -> dict[str, dict[str, int]]:
    """Node counts per label and relationship counts per type."""
    nodes = await graph.run_read(
        "MATCH (n) UNWIND labels(n) AS label RETURN label, count(*) AS count ORDER BY label"
    )
    rels = await graph.run_read(
        "MATCH ()-[r]->() RETURN type(r) AS type, count(*) AS count ORDER BY type"
    )
    return {
        "nodes": {row["label"]: row["count"] for row in nodes},
        "relationships": {row["type"]: row["count"] for row in rels},
    }


def is_transient(error: BaseException) -> bool:
    """Whether re-running the same work may succeed (lost connection, lock timeout)."""
    return isinstance(error, (ServiceUnavailable, SessionExpired, TransientError))
