from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Set, Union

from app.config import Settings, get_settings
from app.models import Coordinate, SearchCandidate, SearchFilters, SearchResponse, SortSpec
from app.services.catalog import ItemCatalog, to_candidate
from app.services.location import LocationProvider, origin_of
from app.services.ranking import DistanceRanker

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all categories"


def apply_filters(candidates: List[SearchCandidate], filters: SearchFilters) -> List[SearchCandidate]:
    """Text, category, price, location, availability; each skipped when unset."""
    items = list(candidates)

    text = filters.text.strip().lower()
    if text:
        items = [c for c in items if text in c.title.lower() or text in c.description.lower()]

    category = filters.category.strip().lower()
    if category and category != ALL_CATEGORIES:
        items = [c for c in items if c.category.lower() == category]

    if filters.price_min > 0:
        items = [c for c in items if c.price_per_day >= filters.price_min]
    if filters.price_max > 0:
        items = [c for c in items if c.price_per_day <= filters.price_max]

    location = filters.location.strip().lower()
    if location:
        items = [c for c in items if c.location and location in c.location.lower()]

    if filters.availability == "available":
        items = [c for c in items if c.is_available]

    return items


def paginate(items: List[SearchCandidate], page: int, page_size: int) -> List[SearchCandidate]:
    start = (max(page, 1) - 1) * page_size
    return items[start : start + page_size]


class SearchPipeline:
    """Catalog -> filters -> distance ranking -> one page."""

    def __init__(
        self,
        catalog: ItemCatalog,
        ranker: DistanceRanker,
        settings: Optional[Settings] = None,
    ) -> None:
        self.catalog = catalog
        self.ranker = ranker
        self.settings = settings or get_settings()

    async def search(
        self,
        filters: SearchFilters,
        sort: SortSpec,
        page: int = 1,
        origin: Optional[Coordinate] = None,
        page_size: Optional[int] = None,
        radius_km: Optional[float] = None,
    ) -> SearchResponse:
        page_size = page_size or self.settings.page_size

        params: Dict[str, Any] = {}
        if origin is not None:
            params = {
                "lat": origin.latitude,
                "lon": origin.longitude,
                "radius": radius_km or self.settings.default_radius_km,
            }
        raw_items = await self.catalog.list_all(params)

        candidates = apply_filters([to_candidate(item) for item in raw_items], filters)
        ranked = await self.ranker.rank(candidates, origin, sort)

        total = len(ranked)
        total_pages = math.ceil(total / page_size) if page_size else 0
        return SearchResponse(
            items=paginate(ranked, page, page_size),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_more=page < total_pages,
        )


class SearchSession:
    """One requester's browse state: text box, filters, sort and page.

    Typing is debounced; clearing the text, changing filters or sort, and
    paging search immediately. Every search gets a generation number and only
    the newest generation's response is applied.
    """

    def __init__(
        self,
        pipeline: SearchPipeline,
        location: Optional[LocationProvider] = None,
        debounce_s: Optional[float] = None,
        on_result: Optional[Callable[[SearchResponse], None]] = None,
    ) -> None:
        self.pipeline = pipeline
        self.location = location
        self.debounce_s = pipeline.settings.search_debounce_s if debounce_s is None else debounce_s
        self.on_result = on_result

        self.filters = SearchFilters()
        self.sort = SortSpec.parse("created_desc")
        self.page = 1
        self.generation = 0
        self.result: Optional[SearchResponse] = None
        self.error: Optional[Exception] = None

        self._timer: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    async def start(self) -> asyncio.Task:
        """Pick the default sort from whether we know where the user is, then search."""
        origin = await origin_of(self.location)
        self.sort = SortSpec.parse("distance_asc" if origin is not None else "created_desc")
        return self.search_now()

    def on_text_input(self, text: str) -> Optional[asyncio.Task]:
        self._cancel_timer()
        self.filters = self.filters.model_copy(update={"text": text})
        self.page = 1
        if text == "":
            return self.search_now()
        self._timer = asyncio.get_running_loop().create_task(self._debounced())
        return None

    def set_filters(self, **changes: Any) -> asyncio.Task:
        self.filters = self.filters.model_copy(update=changes)
        self.page = 1
        return self.search_now()

    def set_sort(self, sort: Union[SortSpec, str]) -> asyncio.Task:
        self.sort = SortSpec.parse(sort) if isinstance(sort, str) else sort
        self.page = 1
        return self.search_now()

    def set_page(self, page: int) -> asyncio.Task:
        self.page = max(page, 1)
        return self.search_now()

    def clear_all(self) -> asyncio.Task:
        self.filters = SearchFilters()
        self.sort = SortSpec.parse("created_desc")
        self.page = 1
        return self.search_now()

    def search_now(self) -> asyncio.Task:
        self._cancel_timer()
        self.generation += 1
        task = asyncio.get_running_loop().create_task(
            self._run(self.generation, self.filters, self.sort, self.page)
        )
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    def total_pages(self) -> int:
        return self.result.total_pages if self.result is not None else 0

    def page_numbers(self, window: int = 2) -> List[int]:
        """Page links around the current page."""
        total = self.total_pages()
        start = max(1, self.page - window)
        end = min(total, self.page + window)
        return list(range(start, end + 1))

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce_s)
        self._timer = None
        self.search_now()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _run(self, generation: int, filters: SearchFilters, sort: SortSpec, page: int) -> Optional[SearchResponse]:
        try:
            origin = await origin_of(self.location)
            response = await self.pipeline.search(filters, sort, page, origin=origin)
        except Exception as e:
            if generation != self.generation:
                logger.debug("Ignoring failure of stale search (generation %s): %s", generation, e)
                return None
            logger.warning("Search failed: %s", e)
            self.error = e
            return None

        if generation != self.generation:
            logger.debug("Dropping stale search result (generation %s, latest %s)", generation, self.generation)
            return None

        self.result = response
        self.error = None
        if self.on_result is not None:
            self.on_result(response)
        return response

    async def aclose(self) -> None:
        self._cancel_timer()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
