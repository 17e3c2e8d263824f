"""Trend processing package.

This package contains modules for:
- Sentiment labels (sentiment.py)
- Merging observations into trend records (merge.py)
- Stream statistics between cycles (stream.py)
- Update cycle orchestration (pipeline.py)
- Main application (app.py)
"""

from .merge import (
    Keyword,
    StreamStats,
    Observation,
    merge_sentiment,
    merge_keywords,
    build_updated_fields,
    build_new_trend
)

from .sentiment import NO_DATA_LABEL, label_for

from .stream import TweetStreamTracker

from .pipeline import UpdateReport, update_trends, process_trend

__all__ = [
    # Merge
    'Keyword',
    'StreamStats',
    'Observation',
    'merge_sentiment',
    'merge_keywords',
    'build_updated_fields',
    'build_new_trend',

    # Sentiment
    'NO_DATA_LABEL',
    'label_for',

    # Stream
    'TweetStreamTracker',

    # Pipeline
    'UpdateReport',
    'update_trends',
    'process_trend'
]
