from typing import AsyncGenerator, Callable

import pytest_asyncio

from backoffice.features.reports.cache import ReportResultCache
from backoffice.features.reports.dispatcher import ReportTaskDispatcher
from backoffice.features.reports.engine import ReportEngine
from backoffice.features.reports.store import ReportStore
from backoffice.features.reports.tests.fakes import make_sources


@pytest_asyncio.fixture
async def make_engine() -> AsyncGenerator[Callable[..., ReportEngine], None]:
    """
    Builds engines over fake sources by default. Every engine's pending
    report tasks are awaited before the test database goes away.
    """
    engines: list[ReportEngine] = []

    def _make(sources=None, aggregators=None, cache_max_entries: int = 10) -> ReportEngine:
        engine = ReportEngine(
            store=ReportStore(),
            cache=ReportResultCache(max_entries=cache_max_entries),
            dispatcher=ReportTaskDispatcher(),
            sources=sources or make_sources(),
            aggregators=aggregators,
        )
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        await engine.dispatcher.join()
