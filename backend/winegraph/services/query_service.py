"""
Read-only query service over the wine graph.

Stateless: every call borrows the shared GraphSession, runs one
parameterized read query and maps the rows onto response models. Safe to
call concurrently; it holds no per-call state.

An empty result is a normal return value. Store failures and timeouts
raise QueryError so callers can tell "nothing matched" from "couldn't ask".
"""

import asyncio
import logging
import math
import re
from typing import Any, Optional

from neo4j.exceptions import DriverError, Neo4jError

from ..config import Config
from ..db import GraphSession, is_transient
from ..errors import ConfigError, QueryError
from ..models.response import TopWine, VarietyCount, WineSummary

logger = logging.getLogger(__name__)

NA = Config.TEXT_NOT_AVAILABLE
NO_PRICE = Config.PRICE_NOT_AVAILABLE

SEARCH_QUERY = f"""
CALL db.index.fulltext.queryNodes('{Config.FULLTEXT_INDEX}', $terms) YIELD node AS wine, score
WITH DISTINCT wine, score
MATCH (wine)-[:IS_FROM_COUNTRY]->(c:Country)
WHERE wine.price <= $price
RETURN c.name AS country,
       wine.id AS wineID,
       wine.points AS points,
       wine.title AS title,
       coalesce(wine.description, $na) AS description,
       coalesce(wine.price, $no_price) AS price,
       coalesce(wine.variety, $na) AS variety,
       coalesce(wine.winery, $na) AS winery,
       score
ORDER BY score DESC, points DESC
LIMIT $limit
"""

TOP_BY_COUNTRY_QUERY = """
MATCH (w:Wine)-[:IS_FROM_COUNTRY]->(c:Country {name: $country})
OPTIONAL MATCH (w)-[:IS_FROM_PROVINCE]->(p:Province)
OPTIONAL MATCH (w)-[:TASTED_BY]->(t:Person)
RETURN w.id AS wineID,
       c.name AS country,
       coalesce(p.name, $na) AS province,
       w.title AS title,
       w.points AS points,
       coalesce(w.price, $no_price) AS price,
       coalesce(w.variety, $na) AS variety,
       coalesce(t.name, $na) AS tasterName
ORDER BY points DESC, wineID ASC
LIMIT $limit
"""

TOP_BY_PROVINCE_QUERY = """
MATCH (w:Wine)-[:IS_FROM_PROVINCE]->(p:Province {name: $province})
MATCH (w)-[:IS_FROM_COUNTRY]->(c:Country)
OPTIONAL MATCH (w)-[:TASTED_BY]->(t:Person)
RETURN w.id AS wineID,
       c.name AS country,
       p.name AS province,
       w.title AS title,
       w.points AS points,
       coalesce(w.price, $no_price) AS price,
       coalesce(w.variety, $na) AS variety,
       coalesce(t.name, $na) AS tasterName
ORDER BY points DESC, wineID ASC
LIMIT $limit
"""

MOST_BY_VARIETY_QUERY = """
MATCH (w:Wine)-[:IS_FROM_COUNTRY]->(c:Country {name: $country})
WHERE w.variety IS NOT NULL
RETURN w.variety AS variety, c.name AS country, count(w) AS wineCount
ORDER BY wineCount DESC, variety ASC
LIMIT $limit
"""

# Lucene query syntax characters; user terms are matched literally
_LUCENE_SPECIAL = re.compile(r'([+\-!(){}\[\]^"~*?:\\/]|&&|\|\|)')
# Boolean operators are only recognised in upper case
_LUCENE_KEYWORDS = re.compile(r"\b(AND|OR|NOT)\b")


def escape_terms(terms: str) -> str:
    """Escape full-text query operators so terms are matched as plain words."""
    escaped = _LUCENE_SPECIAL.sub(r"\\\1", terms)
    return _LUCENE_KEYWORDS.sub(lambda m: m.group(1).lower(), escaped)


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return value.strip()


def _require_limit(limit: Any) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= Config.MAX_RESULT_LIMIT:
        raise ConfigError(f"limit must be an integer between 1 and {Config.MAX_RESULT_LIMIT}, got {limit!r}")
    return limit


class QueryService:
    """
    Read-only operations over the populated graph.

    Usage:
        service = QueryService(graph)
        wines = await service.search_by_keywords("tuscany red", max_price=50)
    """

    def __init__(self, graph: GraphSession, timeout: Optional[float] = None):
        """
        Initialize service.

        Args:
            graph: Shared graph session
            timeout: Per-query timeout in seconds (defaults to Config.query_timeout_seconds())
        """
        self.graph = graph
        self.timeout = timeout if timeout is not None else Config.query_timeout_seconds()

    async def _read(self, name: str, query: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Run a read query under the timeout, translating failures to QueryError."""
        params = {**params, "na": NA, "no_price": NO_PRICE}
        try:
            return await asyncio.wait_for(self.graph.run_read(query, params), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{name} timed out after {self.timeout}s")
            raise QueryError(f"{name} timed out", retryable=True) from e
        except (Neo4jError, DriverError) as e:
            logger.error(f"{name} failed: {type(e).__name__}: {e}")
            raise QueryError(f"{name} failed", retryable=is_transient(e)) from e

    async def search_by_keywords(
        self,
        terms: str,
        max_price: float,
        limit: int = Config.SEARCH_LIMIT,
    ) -> list[WineSummary]:
        """
        Full-text search over wine title, description and variety.

        Args:
            terms: Free-text keywords
            max_price: Inclusive price ceiling (wines without a price never match)
            limit: Max results

        Returns:
            Wines ordered by relevance, then points, both descending.
            Empty if nothing matches.

        Raises:
            ConfigError: Empty terms, negative price or bad limit
            QueryError: Store unavailable or timed out
        """
        terms = _require_text("terms", terms)
        if isinstance(max_price, bool) or not isinstance(max_price, (int, float)):
            raise ConfigError(f"max_price must be a number, got {max_price!r}")
        if not math.isfinite(max_price) or max_price < 0:
            raise ConfigError(f"max_price must be >= 0, got {max_price!r}")
        limit = _require_limit(limit)

        rows = await self._read(
            "search",
            SEARCH_QUERY,
            {"terms": escape_terms(terms), "price": float(max_price), "limit": limit},
        )
        logger.debug(f"search '{terms}' <= {max_price}: {len(rows)} results")
        return [WineSummary.model_validate(row) for row in rows]

    async def top_by_country(self, country: str, limit: int = Config.SEARCH_LIMIT) -> list[TopWine]:
        """Highest-rated wines from a country."""
        country = _require_text("country", country)
        rows = await self._read(
            "top_by_country",
            TOP_BY_COUNTRY_QUERY,
            {"country": country, "limit": _require_limit(limit)},
        )
        return [TopWine.model_validate(row) for row in rows]

    async def top_by_province(self, province: str, limit: int = Config.SEARCH_LIMIT) -> list[TopWine]:
        """Highest-rated wines from a province."""
        province = _require_text("province", province)
        rows = await self._read(
            "top_by_province",
            TOP_BY_PROVINCE_QUERY,
            {"province": province, "limit": _require_limit(limit)},
        )
        return [TopWine.model_validate(row) for row in rows]

    async def most_by_variety(self, country: str, limit: int = Config.SEARCH_LIMIT) -> list[VarietyCount]:
        """Varieties with the most wines in a country."""
        country = _require_text("country", country)
        rows = await self._read(
            "most_by_variety",
            MOST_BY_VARIETY_QUERY,
            {"country": country, "limit": _require_limit(limit)},
        )
        return [VarietyCount.model_validate(row) for row in rows]
