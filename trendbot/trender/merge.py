"""Merge engine for trend records.

Combines a persisted trend with one cycle's observation:

- Sentiment: running weighted average, weights are ``tweets_analyzed`` counts
- Keywords: existing ++ incoming, first occurrence of a word wins, stable
  sort by occurrences descending, truncated to the configured maximum
- Rank, tweets and articles: replaced by the observation

All functions are pure. Inputs are never mutated; new values are returned.
"""

import math
from dataclasses import dataclass
from itertools import chain
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from trendbot.core.errors import ComputationError
from trendbot.trender.sentiment import NO_DATA_LABEL, label_for


@dataclass(frozen=True)
class Keyword:
    """A word and how often it appeared in analyzed tweets."""
    word: str
    occurences: int

    def __post_init__(self):
        if not isinstance(self.word, str) or not self.word:
            raise ComputationError(f"Keyword word must be a non-empty string, got {self.word!r}")
        count = self.occurences
        # JSON stores may hand back 3.0 for 3
        if isinstance(count, bool) or not isinstance(count, (int, float)) \
                or not math.isfinite(count) or count != int(count):
            raise ComputationError(f"Occurrences of {self.word!r} must be an integer, got {count!r}")
        if count < 0:
            raise ComputationError(f"Occurrences of {self.word!r} must not be negative, got {count!r}")
        object.__setattr__(self, 'occurences', int(count))

    @classmethod
    def coerce(cls, value: Union["Keyword", Mapping[str, Any]]) -> "Keyword":
        """Accept a Keyword or a stored ``{word, occurences}`` mapping."""
        if isinstance(value, Keyword):
            return value
        try:
            word, occurences = value['word'], value['occurences']
        except (KeyError, TypeError) as e:
            raise ComputationError(f"Malformed keyword entry: {value!r}") from e
        return cls(word=word, occurences=occurences)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored dictionary shape."""
        return {'word': self.word, 'occurences': self.occurences}


@dataclass(frozen=True)
class StreamStats:
    """Sentiment and keywords tracked for one trend since the last cycle."""
    sentiment: float
    tweets_analyzed: int
    keywords: Tuple[Keyword, ...] = ()

    def __post_init__(self):
        _check_score(self.sentiment, "stream sentiment")
        _check_weight(self.tweets_analyzed, "stream tweets_analyzed")
        object.__setattr__(self, 'keywords', tuple(Keyword.coerce(k) for k in self.keywords))


@dataclass(frozen=True)
class Observation:
    """Freshly collected data for one trend in one update cycle."""
    name: str
    rank: Optional[int]
    articles: Tuple[Any, ...] = ()
    tweets: Tuple[Any, ...] = ()
    stream: Optional[StreamStats] = None


def _check_score(score: float, what: str) -> None:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise ComputationError(f"{what} must be a finite number, got {score!r}")


def _check_weight(weight: int, what: str) -> None:
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight):
        raise ComputationError(f"{what} must be a finite number, got {weight!r}")
    if weight < 0:
        raise ComputationError(f"{what} must not be negative, got {weight!r}")


def merge_sentiment(
    existing_score: float,
    existing_weight: int,
    incoming_score: float,
    incoming_weight: int,
) -> Tuple[float, int]:
    """
    Weighted average of two sentiment scores.

    Args:
        existing_score: Score already stored for the trend
        existing_weight: Tweets behind the stored score
        incoming_score: Score observed this cycle
        incoming_weight: Tweets behind the observed score

    Returns:
        Tuple of (merged score, total weight). The score is 0.0 when both
        weights are zero.

    Raises:
        ComputationError: negative weight or non-finite score/weight
    """
    _check_score(existing_score, "existing sentiment_score")
    _check_score(incoming_score, "incoming sentiment_score")
    _check_weight(existing_weight, "existing tweets_analyzed")
    _check_weight(incoming_weight, "incoming tweets_analyzed")

    total_weight = existing_weight + incoming_weight

    if total_weight == 0:
        return 0.0, total_weight
    # One-sided merges return the other score unchanged
    if existing_weight == 0:
        return float(incoming_score), total_weight
    if incoming_weight == 0:
        return float(existing_score), total_weight

    score = (incoming_score * incoming_weight + existing_score * existing_weight) / total_weight
    return float(score), total_weight


def merge_keywords(
    existing: Iterable[Union[Keyword, Mapping[str, Any]]],
    incoming: Iterable[Union[Keyword, Mapping[str, Any]]],
    max_count: int,
) -> List[Keyword]:
    """
    Merge two keyword lists into a bounded ranking.

    The first occurrence of each word is kept, so a stored keyword's count
    wins over an incoming one for the same word. Ties in occurrences keep
    first-seen order.

    Args:
        existing: Keywords already stored for the trend
        incoming: Keywords observed this cycle
        max_count: Maximum number of keywords to keep

    Returns:
        New list of at most ``max_count`` keywords
    """
    if max_count <= 0:
        return []

    seen = set()
    merged: List[Keyword] = []
    for entry in chain(existing or (), incoming or ()):
        keyword = Keyword.coerce(entry)
        if keyword.word in seen:
            continue
        seen.add(keyword.word)
        merged.append(keyword)

    # list.sort is stable, also with reverse=True
    merged.sort(key=lambda k: k.occurences, reverse=True)
    return merged[:max_count]


def _get(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def build_updated_fields(record: Any, observation: Observation, max_keywords: int) -> Dict[str, Any]:
    """
    Compute the new column values for an existing trend.

    Args:
        record: Stored trend (ORM row or mapping with the trend columns)
        observation: This cycle's data for the same trend
        max_keywords: Keyword list bound

    Returns:
        Dict of columns to overwrite
    """
    stream = observation.stream
    incoming_score = stream.sentiment if stream else 0.0
    incoming_weight = stream.tweets_analyzed if stream else 0
    incoming_keywords = stream.keywords if stream else ()

    score, tweets_analyzed = merge_sentiment(
        _get(record, 'sentiment_score', 0.0),
        _get(record, 'tweets_analyzed', 0),
        incoming_score,
        incoming_weight,
    )
    keywords = merge_keywords(_get(record, 'keywords', []), incoming_keywords, max_keywords)

    return {
        'sentiment_score': score,
        'sentiment_description': label_for(score),
        'tweets_analyzed': tweets_analyzed,
        'keywords': [k.to_dict() for k in keywords],
        'rank': observation.rank,
        'tweets': list(observation.tweets),
        'articles': list(observation.articles),
    }


def build_new_trend(observation: Observation, max_keywords: int) -> Dict[str, Any]:
    """
    Compute the column values for a trend seen for the first time.

    Args:
        observation: This cycle's data for the trend
        max_keywords: Keyword list bound

    Returns:
        Dict of columns for a new record
    """
    stream = observation.stream

    if stream:
        score = float(stream.sentiment)
        description = label_for(score)
        tweets_analyzed = stream.tweets_analyzed
        keywords = merge_keywords((), stream.keywords, max_keywords)
    else:
        score = 0.0
        description = NO_DATA_LABEL
        tweets_analyzed = 0
        keywords = []

    return {
        'name': observation.name,
        'rank': observation.rank,
        'sentiment_score': score,
        'sentiment_description': description,
        'tweets_analyzed': tweets_analyzed,
        'keywords': [k.to_dict() for k in keywords],
        'tweets': list(observation.tweets),
        'articles': list(observation.articles),
    }
