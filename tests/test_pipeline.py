"""Tests for the trend update orchestrator."""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock

from trendbot.core.errors import BatchUpdateError, ProviderError
from trendbot.core.repositories import create_trend, get_trend_by_name, list_trends
from trendbot.core.settings import Settings
from trendbot.ingestor.news import NewsFetcher
from trendbot.trender.merge import Keyword
from trendbot.trender.pipeline import UpdateReport, unique_trends, update_trends
from trendbot.trender.stream import TweetStreamTracker


@pytest.fixture
def config():
    return Settings(max_tweets_per_trend=2, max_keywords_per_trend=2)


@pytest.fixture
def news_fetcher():
    fetcher = AsyncMock()
    fetcher.get_news = AsyncMock(side_effect=lambda name: [{'title': f'{name} news', 'url': f'https://news/{name}'}])
    return fetcher


@pytest.fixture
def tweet_client():
    client = AsyncMock()
    client.get_tweet_sample = AsyncMock(
        side_effect=lambda name, max_count: [{'id': f'{name}-{i}', 'text': name} for i in range(max_count)]
    )
    return client


async def seed(session_factory, **fields):
    record = {
        'rank': 9,
        'sentiment_score': 0.0,
        'sentiment_description': 'No Data',
        'tweets_analyzed': 0,
        'keywords': [],
        'tweets': [],
        'articles': [],
    }
    record.update(fields)
    async with session_factory() as session:
        await create_trend(session, record)


def test_unique_trends_keeps_first_occurrence():
    trends = [{'name': 'a', 'rank': 1}, {'name': 'b', 'rank': 2}, {'name': 'a', 'rank': 3}, {'rank': 4}]
    assert unique_trends(trends) == [('a', 1), ('b', 2)]


@pytest.mark.asyncio
async def test_new_trend_without_stream_data(session_factory, config, news_fetcher, tweet_client):
    report = await update_trends(
        [{'name': 'Fresh', 'rank': 1}], None,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert report.ok
    assert report.created == ['Fresh']

    async with session_factory() as session:
        trend = await get_trend_by_name(session, 'Fresh')

    assert trend.sentiment_score == 0
    assert trend.sentiment_description == 'No Data'
    assert trend.tweets_analyzed == 0
    assert trend.keywords == []
    assert trend.tweets == [{'id': 'Fresh-0', 'text': 'Fresh'}, {'id': 'Fresh-1', 'text': 'Fresh'}]
    assert trend.articles == [{'title': 'Fresh news', 'url': 'https://news/Fresh'}]
    tweet_client.get_tweet_sample.assert_awaited_once_with('Fresh', 2)


@pytest.mark.asyncio
async def test_existing_trend_is_merged(session_factory, config, news_fetcher, tweet_client):
    await seed(
        session_factory, name='a', sentiment_score=0.5, sentiment_description='Positive',
        tweets_analyzed=5, keywords=[{'word': 'a', 'occurences': 10}], tweets=[{'id': 'old'}],
    )

    tracker = TweetStreamTracker(max_keywords=5)
    tracker.track(['a'])
    for text, score in [("alpha alpha", -0.3), ("beta", -0.3), ("alpha", -0.3)]:
        tracker.add_tweet('a', text, score)

    report = await update_trends(
        [{'name': 'a', 'rank': 3}], tracker,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert report.updated == ['a']
    async with session_factory() as session:
        trend = await get_trend_by_name(session, 'a')

    assert trend.tweets_analyzed == 8
    assert trend.sentiment_score == pytest.approx((-0.3 * 3 + 0.5 * 5) / 8)
    assert trend.sentiment_description == 'Positive'
    assert trend.keywords == [{'word': 'a', 'occurences': 10}, {'word': 'alpha', 'occurences': 3}]
    assert trend.rank == 3
    assert trend.tweets == [{'id': 'a-0', 'text': 'a'}, {'id': 'a-1', 'text': 'a'}]


@pytest.mark.asyncio
async def test_old_trends_removed(session_factory, config, news_fetcher, tweet_client):
    for name in ('a', 'b', 'c'):
        await seed(session_factory, name=name)

    report = await update_trends(
        [{'name': 'a', 'rank': 1}, {'name': 'b', 'rank': 2}], None,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert report.removed == 1
    assert sorted(report.updated) == ['a', 'b']
    async with session_factory() as session:
        assert sorted(t.name for t in await list_trends(session)) == ['a', 'b']


@pytest.mark.asyncio
async def test_failing_trend_does_not_block_others(session_factory, config, tweet_client):
    async def get_news(name):
        if name == 'bad':
            raise ProviderError('news', name, 'HTTP 500')
        return []

    news_fetcher = AsyncMock()
    news_fetcher.get_news = AsyncMock(side_effect=get_news)

    report = await update_trends(
        [{'name': 'good', 'rank': 1}, {'name': 'bad', 'rank': 2}], None,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert report.created == ['good']
    assert list(report.failed) == ['bad']
    assert 'HTTP 500' in report.failed['bad']
    assert not report.ok
    with pytest.raises(BatchUpdateError) as exc_info:
        report.raise_for_failures()
    assert 'bad' in exc_info.value.failures

    async with session_factory() as session:
        assert await get_trend_by_name(session, 'bad') is None


@pytest.mark.asyncio
async def test_failed_trend_keeps_previous_state(session_factory, config, news_fetcher):
    await seed(session_factory, name='a', rank=4, tweets_analyzed=7, sentiment_score=0.2)

    tweet_client = AsyncMock()
    tweet_client.get_tweet_sample = AsyncMock(side_effect=ProviderError('tweets', 'a', 'HTTP 503'))

    report = await update_trends(
        [{'name': 'a', 'rank': 1}], None,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert 'a' in report.failed
    async with session_factory() as session:
        trend = await get_trend_by_name(session, 'a')
    assert trend.rank == 4
    assert trend.tweets_analyzed == 7


EMPTY_FEED = '<?xml version="1.0"?><rss version="2.0"><channel><title>news</title></channel></rss>'


def delayed_feed_fetcher(delays, fetch_timeout, max_concurrent=1):
    """Real NewsFetcher on a transport that answers each query after a delay."""
    async def handler(request):
        await asyncio.sleep(delays.get(request.url.params['q'], 0.3))
        return httpx.Response(200, text=EMPTY_FEED)

    return NewsFetcher(
        feed_url="https://news.test/rss",
        max_articles=5,
        fetch_timeout=fetch_timeout,
        max_concurrent=max_concurrent,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_queued_fetches_do_not_time_out(session_factory, config, tweet_client):
    delays = {'a': 0.3, 'b': 0.3, 'c': 0.3}

    async with delayed_feed_fetcher(delays, fetch_timeout=0.5, max_concurrent=1) as news_fetcher:
        report = await update_trends(
            [{'name': name, 'rank': i} for i, name in enumerate(delays, start=1)], None,
            news_fetcher=news_fetcher, tweet_client=tweet_client,
            session_factory=session_factory, config=config,
        )

    assert report.failed == {}
    assert report.created == ['a', 'b', 'c']


@pytest.mark.asyncio
async def test_slow_provider_times_out(session_factory, config, tweet_client):
    delays = {'fast': 0.0, 'slow': 5.0}

    async with delayed_feed_fetcher(delays, fetch_timeout=0.2, max_concurrent=2) as news_fetcher:
        report = await update_trends(
            [{'name': 'fast', 'rank': 1}, {'name': 'slow', 'rank': 2}], None,
            news_fetcher=news_fetcher, tweet_client=tweet_client,
            session_factory=session_factory, config=config,
        )

    assert report.created == ['fast']
    assert report.failed['slow'] == "ProviderError: news failed for 'slow': timed out after 0.2s"


@pytest.mark.asyncio
async def test_reconcile_failure_is_reported(config, news_fetcher, tweet_client, session_factory):
    calls = {'n': 0}

    def flaky_factory():
        calls['n'] += 1
        # first session is the reconciler's
        if calls['n'] == 1:
            raise RuntimeError("connection refused")
        return session_factory()

    report = await update_trends(
        [{'name': 'a', 'rank': 1}], None,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=flaky_factory, config=config,
    )

    assert report.created == ['a']
    assert report.errors and 'connection refused' in report.errors[0]
    assert not report.ok


@pytest.mark.asyncio
async def test_tracker_repointed_after_cycle(session_factory, config, news_fetcher, tweet_client):
    tracker = TweetStreamTracker(max_keywords=5)
    tracker.track(['old'])
    tracker.add_tweet('old', 'text here', 0.5)

    await update_trends(
        [{'name': 'new', 'rank': 1}], tracker,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    assert tracker.tracked_names == ['new']
    assert tracker.get_data()['new'].tweets_analyzed == 0


@pytest.mark.asyncio
async def test_stream_data_used_for_new_trend(session_factory, config, news_fetcher, tweet_client):
    tracker = TweetStreamTracker(max_keywords=5)
    tracker.track(['x'])
    tracker.add_tweet('x', 'launch launch rocket', 0.9)
    tracker.add_tweet('x', 'rocket crowd', 0.7)

    await update_trends(
        [{'name': 'x', 'rank': 1}], tracker,
        news_fetcher=news_fetcher, tweet_client=tweet_client,
        session_factory=session_factory, config=config,
    )

    async with session_factory() as session:
        trend = await get_trend_by_name(session, 'x')
    assert trend.tweets_analyzed == 2
    assert trend.sentiment_score == pytest.approx(0.8)
    assert trend.sentiment_description == 'Very Positive'
    assert [Keyword.coerce(k).word for k in trend.keywords] == ['launch', 'rocket']


def test_report_to_dict():
    report = UpdateReport(created=['a'], removed=2)
    data = report.to_dict()
    assert data['created'] == ['a']
    assert data['removed'] == 2
    assert data['failed'] == {}
    report.raise_for_failures()
