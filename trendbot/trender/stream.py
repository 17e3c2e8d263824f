"""In-process tracker for tweet sentiment between update cycles.

Analyzed tweets are fed in as they arrive; each batch takes a snapshot
with :meth:`TweetStreamTracker.get_data` and then points the tracker at
the new trend set.
"""

import math
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from trendbot.core.errors import ComputationError
from trendbot.core.logging import get_logger
from trendbot.core.settings import settings
from trendbot.core.utils import count_keywords, tokenize
from trendbot.trender.merge import Keyword, StreamStats, merge_keywords

logger = get_logger(__name__)


@dataclass
class _TrendAccumulator:
    sentiment_sum: float = 0.0
    tweets: int = 0
    keywords: Counter = field(default_factory=Counter)


class TweetStreamTracker:
    """Accumulates sentiment and keyword counts per tracked trend."""

    def __init__(self, max_keywords: Optional[int] = None):
        self.max_keywords = settings.max_keywords_per_trend if max_keywords is None else max_keywords
        self._lock = threading.Lock()
        self._tracked: Dict[str, _TrendAccumulator] = {}

    @property
    def tracked_names(self):
        with self._lock:
            return list(self._tracked)

    def track(self, names: Iterable[str]) -> None:
        """Track exactly *names*; stats for names kept are preserved."""
        wanted = list(dict.fromkeys(names))
        with self._lock:
            self._tracked = {
                name: self._tracked.get(name) or _TrendAccumulator()
                for name in wanted
            }
        logger.info(f"Tracking {len(wanted)} trends")

    def add_tweet(self, name: str, text: str, sentiment: float) -> bool:
        """
        Record one analyzed tweet.

        Args:
            name: Trend the tweet matched
            text: Tweet text, used for keyword counts
            sentiment: Score of the tweet in [-1, 1]

        Returns:
            True if recorded, False if *name* is not tracked
        """
        if isinstance(sentiment, bool) or not isinstance(sentiment, (int, float)) or not math.isfinite(sentiment):
            raise ComputationError(f"Tweet sentiment must be a finite number, got {sentiment!r}")

        counts = count_keywords(text, exclude=tokenize(name))
        with self._lock:
            acc = self._tracked.get(name)
            if acc is None:
                return False
            acc.sentiment_sum += sentiment
            acc.tweets += 1
            acc.keywords.update(counts)
        return True

    def get_data(self, reset: bool = False) -> Dict[str, StreamStats]:
        """Snapshot of stats per tracked trend; with *reset*, start a new window atomically."""
        with self._lock:
            items = [(name, acc.sentiment_sum, acc.tweets, list(acc.keywords.items()))
                     for name, acc in self._tracked.items()]
            if reset:
                self._tracked = {name: _TrendAccumulator() for name in self._tracked}

        data = {}
        for name, sentiment_sum, tweets, keyword_counts in items:
            keywords = merge_keywords(
                (),
                [Keyword(word=word, occurences=count) for word, count in keyword_counts],
                self.max_keywords,
            )
            data[name] = StreamStats(
                sentiment=sentiment_sum / tweets if tweets else 0.0,
                tweets_analyzed=tweets,
                keywords=tuple(keywords),
            )
        return data
