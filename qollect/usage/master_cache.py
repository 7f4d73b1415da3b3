"""Per-run cache of resolved master dimensions and measures."""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple, TypeVar

from loguru import logger

from ..engine.fetchers import (
    dimension_from_properties, fetch_dimensions, fetch_measures, measure_from_properties, optional_result
)
from ..engine.models import MasterDimension, MasterMeasure
from ..engine.provider import EngineClient

T = TypeVar("T")


class MasterItemCache:
    """
    Resolves library ids to master items, once per id.

    The cache is append-only and meant to live for a single export run.
    A failed resolution is cached as None. Concurrent resolutions of the same
    id share one in-flight request.
    """

    def __init__(self, client: EngineClient):
        self.client = client
        self._dimensions: Dict[str, Optional[MasterDimension]] = {}
        self._measures: Dict[str, Optional[MasterMeasure]] = {}
        self._in_flight: Dict[Tuple[str, str], "asyncio.Future"] = {}

    def prime(self, dimensions: Iterable[MasterDimension] = (), measures: Iterable[MasterMeasure] = ()) -> None:
        """Seed the cache with already-fetched master items."""
        for dimension in dimensions or []:
            self._dimensions.setdefault(dimension.id, dimension)
        for measure in measures or []:
            self._measures.setdefault(measure.id, measure)

    async def warm(self) -> None:
        """Fetch and cache every master dimension and measure."""
        dimensions = await optional_result(fetch_dimensions(self.client), "Master dimension list") or []
        measures = await optional_result(fetch_measures(self.client), "Master measure list") or []
        self.prime(dimensions, measures)
        logger.debug(f"Master cache warmed: {len(dimensions)} dimensions, {len(measures)} measures")

    async def resolve_dimension(self, dimension_id: str) -> Optional[MasterDimension]:
        if not dimension_id:
            return None
        return await self._resolve("dimension", dimension_id, self._dimensions, self._fetch_dimension)

    async def resolve_measure(self, measure_id: str) -> Optional[MasterMeasure]:
        if not measure_id:
            return None
        return await self._resolve("measure", measure_id, self._measures, self._fetch_measure)

    async def _resolve(self, kind: str, item_id: str, store: Dict[str, Optional[T]],
                       fetch: Callable[[str], Awaitable[Optional[T]]]) -> Optional[T]:
        if item_id in store:
            return store[item_id]

        key = (kind, item_id)
        future = self._in_flight.get(key)
        if future is None:
            future = asyncio.ensure_future(fetch(item_id))
            self._in_flight[key] = future
        try:
            result = await future
        finally:
            self._in_flight.pop(key, None)
        store.setdefault(item_id, result)
        return store[item_id]

    async def _fetch_dimension(self, dimension_id: str) -> Optional[MasterDimension]:
        props = await optional_result(self.client.get_dimension_properties(dimension_id), "Dimension properties", dimension_id)
        return dimension_from_properties(dimension_id, props) if props is not None else None

    async def _fetch_measure(self, measure_id: str) -> Optional[MasterMeasure]:
        props = await optional_result(self.client.get_measure_properties(measure_id), "Measure properties", measure_id)
        return measure_from_properties(measure_id, props) if props is not None else None

    def __len__(self) -> int:
        return len(self._dimensions) + len(self._measures)
