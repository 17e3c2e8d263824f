"""News articles for a trend from a Google News RSS search feed."""

import asyncio
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import feedparser
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from trendbot.core.errors import ProviderError
from trendbot.core.logging import get_logger
from trendbot.core.settings import settings
from trendbot.core.utils import clean_text, strip_html

logger = get_logger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def _parse_published(value: Optional[str]) -> Optional[str]:
    """RFC 822 feed date to ISO-8601 UTC, or None."""
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparseable feed date: {value}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def normalize_article(entry: Any) -> Optional[Dict[str, Any]]:
    """
    Turn a feed entry into the stored article shape.

    Args:
        entry: feedparser entry

    Returns:
        Article dict, or None if the entry has no title or link
    """
    title = clean_text(entry.get('title', ''))
    url = entry.get('link')
    if not title or not url:
        return None

    source = entry.get('source') or {}
    return {
        'title': title,
        'url': url,
        'source': source.get('title') if hasattr(source, 'get') else None,
        'published_at': _parse_published(entry.get('published')),
        'summary': strip_html(entry.get('summary', '')),
    }


class NewsFetcher:
    """Fetches recent news articles for trend names."""

    def __init__(
        self,
        feed_url: str = None,
        max_articles: int = None,
        fetch_timeout: float = None,
        request_timeout: float = None,
        max_concurrent: int = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.feed_url = feed_url or settings.news_feed_url
        self.max_articles = settings.max_articles_per_trend if max_articles is None else max_articles
        self.fetch_timeout = fetch_timeout or settings.fetch_timeout_seconds
        self.semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_fetches)
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout or settings.request_timeout_seconds),
            headers={"User-Agent": "TrendBot/1.0 (news lookup)"},
            follow_redirects=True,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def _params(self, trend_name: str) -> Dict[str, str]:
        language = settings.news_language
        region = settings.news_region
        return {
            'q': trend_name,
            'hl': language,
            'gl': region,
            'ceid': f"{region}:{language.split('-')[0]}",
        }

    @retry(
        stop=stop_after_attempt(4),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _fetch_with_retry(self, params: Dict[str, str]) -> httpx.Response:
        response = await self.client.get(self.feed_url, params=params)
        if response.status_code in RETRYABLE_STATUS:
            logger.warning(f"Retryable HTTP {response.status_code} from news feed for '{params['q']}'")
            response.raise_for_status()
        return response

    async def get_news(self, trend_name: str) -> List[Dict[str, Any]]:
        """
        Get recent articles about *trend_name*.

        Args:
            trend_name: Trend to search for

        Returns:
            Up to ``max_articles`` article dicts

        Raises:
            ProviderError: the feed could not be fetched
        """
        if self.max_articles <= 0:
            return []

        async with self.semaphore:
            # budget starts once a slot is held, queueing time excluded
            try:
                response = await asyncio.wait_for(
                    self._fetch_with_retry(self._params(trend_name)), timeout=self.fetch_timeout
                )
                response.raise_for_status()
            except asyncio.TimeoutError as e:
                raise ProviderError("news", trend_name, f"timed out after {self.fetch_timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ProviderError("news", trend_name, f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ProviderError("news", trend_name, f"request error: {e}") from e

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            raise ProviderError("news", trend_name, f"unparseable feed: {feed.get('bozo_exception')}")

        articles = []
        for entry in feed.entries:
            article = normalize_article(entry)
            if article:
                articles.append(article)
            if len(articles) >= self.max_articles:
                break

        logger.debug(f"Fetched {len(articles)} articles for '{trend_name}'")
        return articles
