"""Trend update orchestrator.

Runs one update cycle over the current trending set:
1. Snapshot: take sentiment/keyword stats from the stream tracker
2. Reconcile: delete records for trends no longer trending (independent task)
3. Collect: fetch news and a tweet sample per trend (providers enforce timeouts)
4. Merge: update the existing record or create a new one
5. Join: wait for every task and report every failure
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from trendbot.core.errors import BatchUpdateError
from trendbot.core.logging import get_logger
from trendbot.core.repositories import (
    create_trend,
    get_trend_by_name,
    remove_old_trends,
    update_trend,
)
from trendbot.core.settings import Settings, settings as default_settings
from trendbot.trender.merge import Observation, StreamStats, build_new_trend, build_updated_fields
from trendbot.trender.stream import TweetStreamTracker

logger = get_logger(__name__)


@dataclass
class UpdateReport:
    """Outcome of one update cycle."""
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    removed: int = 0
    errors: List[str] = field(default_factory=list)
    runtime_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed and not self.errors

    def raise_for_failures(self) -> None:
        """Raise :class:`BatchUpdateError` if any trend or the reconciler failed."""
        if not self.ok:
            raise BatchUpdateError(self.failed, self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'created': list(self.created),
            'updated': list(self.updated),
            'failed': dict(self.failed),
            'removed': self.removed,
            'errors': list(self.errors),
            'runtime_seconds': self.runtime_seconds,
        }


def _trend_name_and_rank(trend: Any) -> Tuple[str, Optional[int]]:
    if isinstance(trend, dict):
        return trend.get('name'), trend.get('rank')
    return getattr(trend, 'name', None), getattr(trend, 'rank', None)


def unique_trends(trends: Iterable[Any]) -> List[Tuple[str, Optional[int]]]:
    """(name, rank) pairs in input order, first occurrence of each name kept."""
    seen = set()
    result = []
    for trend in trends:
        name, rank = _trend_name_and_rank(trend)
        if not name:
            logger.warning(f"Skipping trend without a name: {trend!r}")
            continue
        if name in seen:
            continue
        seen.add(name)
        result.append((name, rank))
    return result


async def process_trend(session: AsyncSession, observation: Observation, max_keywords: int) -> str:
    """
    Merge *observation* into the stored trend, or create it.

    Args:
        session: Database session
        observation: This cycle's data for one trend
        max_keywords: Keyword list bound

    Returns:
        'updated' or 'created'
    """
    existing = await get_trend_by_name(session, observation.name)

    if existing is None:
        await create_trend(session, build_new_trend(observation, max_keywords))
        return 'created'

    fields = build_updated_fields(existing, observation, max_keywords)
    if await update_trend(session, observation.name, fields):
        return 'updated'

    # Row vanished between lookup and write; keep the merged values
    logger.warning(f"Trend '{observation.name}' disappeared during update, recreating")
    await create_trend(session, {'name': observation.name, **fields})
    return 'created'


async def _update_single_trend(
    name: str,
    rank: Optional[int],
    stream: Optional[StreamStats],
    news_fetcher,
    tweet_client,
    session_factory,
    config: Settings,
) -> str:
    """Collect one trend's observation and persist the merge.

    Providers bound each fetch by their own timeout, counted from the
    moment they start the request.
    """
    articles = await news_fetcher.get_news(name)
    tweets = await tweet_client.get_tweet_sample(name, config.max_tweets_per_trend)

    observation = Observation(
        name=name,
        rank=rank,
        articles=tuple(articles or ()),
        tweets=tuple(tweets or ()),
        stream=stream,
    )

    async with session_factory() as session:
        outcome = await process_trend(session, observation, config.max_keywords_per_trend)

    logger.debug(f"Trend '{name}' {outcome}")
    return outcome


async def _remove_old(names: List[str], session_factory) -> int:
    async with session_factory() as session:
        return await remove_old_trends(session, names)


async def update_trends(
    trends: Iterable[Any],
    tracker: Optional[TweetStreamTracker],
    *,
    news_fetcher,
    tweet_client,
    session_factory=None,
    config: Settings = None,
) -> UpdateReport:
    """
    Update stored trends from the current trending set.

    Every trend runs as its own task; a failing trend does not stop the
    others. All failures are collected into the report.

    Args:
        trends: Current trends, dicts or objects with 'name' and 'rank'
        tracker: Stream tracker with stats since the last cycle (optional)
        news_fetcher: Object with ``async get_news(name)`` that bounds its own fetch time
        tweet_client: Object with ``async get_tweet_sample(name, max_count)``, same contract
        session_factory: Callable returning an AsyncSession context manager
        config: Settings providing per-trend limits

    Returns:
        UpdateReport with created/updated/failed trends and removed count
    """
    if session_factory is None:
        from trendbot.core.db import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    config = config or default_settings

    start_time = time.time()
    report = UpdateReport()

    current = unique_trends(trends)
    names = [name for name, _ in current]
    stream_data = tracker.get_data(reset=True) if tracker is not None else {}

    logger.info(f"Starting trend update: {len(names)} trends, {len(stream_data)} with stream data")

    reconcile_task = _remove_old(names, session_factory)
    update_tasks = [
        _update_single_trend(
            name, rank, stream_data.get(name),
            news_fetcher, tweet_client, session_factory, config,
        )
        for name, rank in current
    ]

    results = await asyncio.gather(reconcile_task, *update_tasks, return_exceptions=True)

    removed = results[0]
    if isinstance(removed, BaseException):
        logger.error(f"Removing old trends failed: {removed}")
        report.errors.append(f"Reconcile error: {removed}")
    else:
        report.removed = removed

    for (name, _), outcome in zip(current, results[1:]):
        if isinstance(outcome, BaseException):
            logger.error(f"Trend '{name}' failed to update: {type(outcome).__name__}: {outcome}")
            report.failed[name] = f"{type(outcome).__name__}: {outcome}"
        elif outcome == 'created':
            report.created.append(name)
        else:
            report.updated.append(name)

    if tracker is not None:
        tracker.track(names)

    report.runtime_seconds = round(time.time() - start_time, 2)
    logger.info(
        f"Trend update completed in {report.runtime_seconds}s: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.failed)} failed, {report.removed} removed"
    )
    return report


async def run_update_cycle(trends: Iterable[Any], tracker: Optional[TweetStreamTracker]) -> UpdateReport:
    """Run :func:`update_trends` with the configured news and tweet providers."""
    from trendbot.ingestor.news import NewsFetcher
    from trendbot.ingestor.tweets import TweetSearchClient

    async with NewsFetcher() as news_fetcher, TweetSearchClient() as tweet_client:
        return await update_trends(
            trends,
            tracker,
            news_fetcher=news_fetcher,
            tweet_client=tweet_client,
        )
