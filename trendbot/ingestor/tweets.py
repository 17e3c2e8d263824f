"""Sample tweets for a trend from the X/Twitter v2 recent search API."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from trendbot.core.errors import ProviderError
from trendbot.core.logging import get_logger
from trendbot.core.settings import settings

logger = get_logger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)

# recent search accepts max_results in [10, 100]
API_MIN_RESULTS = 10
API_MAX_RESULTS = 100


def build_query(trend_name: str) -> str:
    """Search query for a trend: the exact phrase, original tweets only."""
    name = trend_name.replace('"', '')
    if name.startswith('#') and ' ' not in name:
        phrase = name
    else:
        phrase = f'"{name}"'
    return f"{phrase} -is:retweet -is:reply"


def normalize_tweet(tweet: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the tweet fields stored on a trend."""
    return {
        'id': tweet.get('id'),
        'text': tweet.get('text', ''),
        'author_id': tweet.get('author_id'),
        'created_at': tweet.get('created_at'),
        'metrics': tweet.get('public_metrics', {}),
    }


class TweetSearchClient:
    """Fetches a popular sample of tweets for trend names."""

    def __init__(
        self,
        bearer_token: str = None,
        api_url: str = None,
        fetch_timeout: float = None,
        request_timeout: float = None,
        max_concurrent: int = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = (api_url or settings.twitter_api_url).rstrip('/')
        self.fetch_timeout = fetch_timeout or settings.fetch_timeout_seconds
        self.semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_fetches)
        token = bearer_token if bearer_token is not None else settings.twitter_bearer_token
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout or settings.request_timeout_seconds),
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": "TrendBot/1.0",
            },
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(4),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _search_with_retry(self, params: Dict[str, Any]) -> httpx.Response:
        response = await self.client.get(f"{self.api_url}/tweets/search/recent", params=params)
        if response.status_code in RETRYABLE_STATUS:
            logger.warning(f"Retryable HTTP {response.status_code} from tweet search")
            response.raise_for_status()
        return response

    async def get_tweet_sample(self, trend_name: str, max_count: int) -> List[Dict[str, Any]]:
        """
        Get up to *max_count* recent popular tweets about *trend_name*.

        Args:
            trend_name: Trend to search for
            max_count: Maximum number of tweets to return

        Returns:
            List of tweet dicts

        Raises:
            ProviderError: the search failed
        """
        if max_count <= 0:
            return []

        params = {
            'query': build_query(trend_name),
            'max_results': min(max(max_count, API_MIN_RESULTS), API_MAX_RESULTS),
            'sort_order': 'relevancy',
            'tweet.fields': 'author_id,created_at,public_metrics',
        }

        async with self.semaphore:
            # budget starts once a slot is held, queueing time excluded
            try:
                response = await asyncio.wait_for(self._search_with_retry(params), timeout=self.fetch_timeout)
                response.raise_for_status()
                payload = response.json()
            except asyncio.TimeoutError as e:
                raise ProviderError("tweets", trend_name, f"timed out after {self.fetch_timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ProviderError("tweets", trend_name, f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ProviderError("tweets", trend_name, f"request error: {e}") from e
            except ValueError as e:
                raise ProviderError("tweets", trend_name, f"invalid JSON: {e}") from e

        if payload.get('errors') and not payload.get('data'):
            raise ProviderError("tweets", trend_name, str(payload['errors'][0].get('detail', payload['errors'][0])))

        tweets = [normalize_tweet(t) for t in payload.get('data') or []][:max_count]
        logger.debug(f"Fetched {len(tweets)} tweets for '{trend_name}'")
        return tweets
