"""
Cache-aware wrapper around a remote data backend.

Wraps any client implementing :class:`BackendClient` (stored-procedure
style ``rpc`` calls plus simple table queries) so that identical
requests are answered from a cache tier.  Query keys are built from a
canonical form of the query: filter clauses are sorted, so the order in
which ``eq`` / ``gte`` / ``lte`` were chained does not affect the key.
Ordering clauses keep their relative order because it changes the
result.
"""

import logging
import re
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from tiercache.cache.manager import CacheManager
from tiercache.exceptions import BackendError
from tiercache.keys import canonical_serialize, make_key

logger = logging.getLogger(__name__)

FilterOperator = Literal["eq", "gte", "lte"]


class BackendResponse(BaseModel):
    """``{data, error}`` pair returned by a backend call.

    Attributes:
        data: Response payload (rows for queries, anything for RPC).
        error: Backend error payload; ``None`` on success.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Any = None
    error: Any = None


class QueryFilter(BaseModel):
    """A single ``column <op> value`` filter clause."""

    model_config = ConfigDict(frozen=True)

    column: str
    operator: FilterOperator
    value: Any = None


class QueryOrder(BaseModel):
    """A single ordering clause."""

    model_config = ConfigDict(frozen=True)

    column: str
    ascending: bool = True


class Query(BaseModel):
    """A table query assembled by :class:`CachedQueryBuilder`.

    Attributes:
        table: Table name.
        columns: Column selection, passed to the backend as given.
        filters: Filter clauses in call order.
        order: Ordering clauses in call order.
    """

    table: str = Field(min_length=1)
    columns: str = "*"
    filters: List[QueryFilter] = Field(default_factory=list)
    order: List[QueryOrder] = Field(default_factory=list)

    def canonical(self) -> Dict[str, Any]:
        """Order-independent representation used for cache keys."""
        filters = sorted(
            [f.column, f.operator, canonical_serialize(f.value)]
            for f in self.filters
        )
        return {
            "columns": self.columns,
            "filters": filters,
            "order": [[o.column, o.ascending] for o in self.order],
        }


class BackendClient(Protocol):
    """Minimal async interface of the wrapped backend."""

    async def rpc(self, function_name: str, params: Dict[str, Any]) -> BackendResponse:
        ...

    async def execute(self, query: Query) -> BackendResponse:
        ...


def rpc_key(function_name: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Cache key for an RPC call: ``rpc:<name>:<canonical params>``."""
    return make_key("rpc", function_name, canonical_serialize(params or {}))


def query_key(query: Query) -> str:
    """Cache key for a table query: ``query:<table>:<canonical query>``."""
    return make_key("query", query.table, canonical_serialize(query.canonical()))


class CachedBackend:
    """Serve backend RPC calls and table queries from a cache tier.

    Responses carrying an ``error`` raise :class:`BackendError` and are
    never cached.

    Args:
        manager: Cache manager owning *tier*.
        client: The wrapped backend client.
        tier: Tier for responses (default ``"api"``).

    Raises:
        UnknownTierError: If *tier* is not configured.
    """

    def __init__(
        self,
        manager: CacheManager,
        client: BackendClient,
        tier: str = "api",
    ) -> None:
        manager.get_tier(tier)
        self._manager = manager
        self._client = client
        self._tier = tier

    @property
    def tier(self) -> str:
        return self._tier

    async def rpc(
        self,
        function_name: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> BackendResponse:
        """Execute a stored procedure, answering from cache when possible.

        Raises:
            BackendError: If the backend reports an error.
        """
        call_params = dict(params or {})

        async def produce() -> BackendResponse:
            logger.debug("Executing RPC", extra={"function_name": function_name})
            response = await self._client.rpc(function_name, call_params)
            return _checked(response, f"RPC {function_name} failed")

        return await self._manager.aget_or_compute(
            self._tier, rpc_key(function_name, call_params), produce
        )

    def from_(self, table: str) -> "CachedQueryBuilder":
        """Start building a cached query against *table*."""
        return CachedQueryBuilder(self, table)

    async def execute(self, query: Query) -> BackendResponse:
        """Run *query*, answering from cache when possible.

        Raises:
            BackendError: If the backend reports an error.
        """

        async def produce() -> BackendResponse:
            logger.debug("Executing query", extra={"table": query.table})
            response = await self._client.execute(query)
            return _checked(response, f"Query on {query.table} failed")

        return await self._manager.aget_or_compute(self._tier, query_key(query), produce)

    def invalidate_table(self, table: str) -> int:
        """Drop every cached query against *table* (e.g. after a write)."""
        return self._manager.invalidate_pattern(
            self._tier, f"^query:{re.escape(table)}:"
        )

    def invalidate_rpc(self, function_name: str) -> int:
        """Drop every cached call of *function_name*, whatever its params."""
        return self._manager.invalidate_pattern(
            self._tier, f"^rpc:{re.escape(function_name)}:"
        )


class CachedQueryBuilder:
    """Chainable query builder whose :meth:`execute` goes through the cache."""

    def __init__(self, backend: CachedBackend, table: str) -> None:
        self._backend = backend
        self._table = table
        self._columns = "*"
        self._filters: List[QueryFilter] = []
        self._order: List[QueryOrder] = []

    def select(self, columns: str = "*") -> "CachedQueryBuilder":
        self._columns = columns
        return self

    def eq(self, column: str, value: Any) -> "CachedQueryBuilder":
        self._filters.append(QueryFilter(column=column, operator="eq", value=value))
        return self

    def gte(self, column: str, value: Any) -> "CachedQueryBuilder":
        self._filters.append(QueryFilter(column=column, operator="gte", value=value))
        return self

    def lte(self, column: str, value: Any) -> "CachedQueryBuilder":
        self._filters.append(QueryFilter(column=column, operator="lte", value=value))
        return self

    def order(self, column: str, ascending: bool = True) -> "CachedQueryBuilder":
        self._order.append(QueryOrder(column=column, ascending=ascending))
        return self

    def build(self) -> Query:
        return Query(
            table=self._table,
            columns=self._columns,
            filters=list(self._filters),
            order=list(self._order),
        )

    async def execute(self) -> BackendResponse:
        return await self._backend.execute(self.build())


def _checked(response: BackendResponse, message: str) -> BackendResponse:
    if response.error is not None:
        raise BackendError(message, error=response.error)
    return BackendResponse(data=response.data, error=None)
