"""External data providers: news articles and tweet samples."""

from .news import NewsFetcher, normalize_article
from .tweets import TweetSearchClient, build_query, normalize_tweet

__all__ = [
    'NewsFetcher',
    'normalize_article',
    'TweetSearchClient',
    'build_query',
    'normalize_tweet',
]
