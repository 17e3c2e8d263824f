"""Database models for TrendBot."""
from sqlalchemy import (
    String, DateTime, Integer, Float, JSON, Index
)
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from .db import Base


class Trend(Base):
    """A currently trending topic with merged sentiment and keyword stats."""
    __tablename__ = "trends"

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(280), unique=True, nullable=False)
    rank = mapped_column(Integer, nullable=True)
    sentiment_score = mapped_column(Float, default=0.0, nullable=False)
    sentiment_description = mapped_column(String(64), nullable=False)
    tweets_analyzed = mapped_column(Integer, default=0, nullable=False)
    keywords = mapped_column(JSON, nullable=False, default=list)  # [{word, occurences}]
    tweets = mapped_column(JSON, nullable=False, default=list)
    articles = mapped_column(JSON, nullable=False, default=list)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Trend(name={self.name!r}, rank={self.rank}, tweets_analyzed={self.tweets_analyzed})>"


Index('idx_trends_rank', Trend.rank)
