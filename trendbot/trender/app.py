"""Trender service FastAPI application."""

from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from trendbot.core.db import async_engine, create_all, get_db
from trendbot.core.errors import PersistenceError
from trendbot.core.logging import setup_logging, get_logger
from trendbot.core.repositories import get_trend_by_name, list_trends, trend_to_dict
from trendbot.core.settings import settings
from trendbot.trender.pipeline import run_update_cycle
from trendbot.trender.stream import TweetStreamTracker

# Setup logging
setup_logging("trender")
logger = get_logger(__name__)

SERVICE_NAME = "trender"
VERSION = "0.1.0"

app = FastAPI(title="TrendBot Trender", version=VERSION, description="Trending topics sentiment API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared across requests; fed by /stream/tweets, consumed by /trends/run
tracker = TweetStreamTracker()


class TrendInput(BaseModel):
    """A currently trending topic."""
    name: str = Field(..., min_length=1, max_length=280)
    rank: Optional[int] = Field(default=None, ge=1)


class TrendRunRequest(BaseModel):
    """Request model for an update cycle."""
    trends: List[TrendInput] = Field(default_factory=list)


class TrendRunResponse(BaseModel):
    """Response model for an update cycle."""
    status: str
    message: str
    report: Dict[str, Any]


class AnalyzedTweet(BaseModel):
    """A tweet already scored for sentiment."""
    trend: str = Field(..., min_length=1)
    text: str = ""
    sentiment: float = Field(..., ge=-1.0, le=1.0)


class StreamTweetsRequest(BaseModel):
    tweets: List[AnalyzedTweet]


def check_manual_run_enabled():
    """Check if manual runs are enabled via settings."""
    if not settings.allow_manual_run:
        raise HTTPException(
            status_code=403,
            detail="Manual runs are disabled. Set ALLOW_MANUAL_RUN=true to enable."
        )
    return True


@app.on_event("startup")
async def startup_event():
    """Create the trends table if missing."""
    logger.info(
        "Starting trender service",
        extra={"service": SERVICE_NAME, "version": VERSION, "manual_runs_enabled": settings.allow_manual_run}
    )
    await create_all()


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler."""
    logger.info("Shutting down trender service")
    await async_engine.dispose()


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": SERVICE_NAME}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "tracked_trends": len(tracker.tracked_names),
        "endpoints": {
            "health": "/healthz",
            "trends": "/trends",
            "trend": "/trends/{name}",
            "stream": "/stream/tweets (POST)",
            "trend_run": "/trends/run (POST)" if settings.allow_manual_run else "/trends/run (disabled)",
        }
    }


@app.get("/trends")
async def get_trends(db: AsyncSession = Depends(get_db)):
    """List stored trends ordered by rank."""
    try:
        trends = await list_trends(db)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"trends": [trend_to_dict(t) for t in trends]}


@app.get("/trends/{name}")
async def get_trend(name: str, db: AsyncSession = Depends(get_db)):
    """Get one stored trend."""
    try:
        trend = await get_trend_by_name(db, name)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if trend is None:
        raise HTTPException(status_code=404, detail=f"Trend '{name}' not found")
    return trend_to_dict(trend)


@app.post("/stream/tweets")
async def stream_tweets(request: StreamTweetsRequest):
    """Feed analyzed tweets into the stream tracker."""
    accepted = 0
    for tweet in request.tweets:
        if tracker.add_tweet(tweet.trend, tweet.text, tweet.sentiment):
            accepted += 1
    return {"accepted": accepted, "ignored": len(request.tweets) - accepted}


@app.post("/trends/run", response_model=TrendRunResponse)
async def run_trends_endpoint(
    request: TrendRunRequest,
    _: bool = Depends(check_manual_run_enabled),
):
    """
    Run one update cycle for the posted trending set.

    Removes stored trends not in the set, then merges fresh news, tweets
    and stream stats into each trend. Per-trend failures are reported,
    not raised.
    """
    logger.info(
        "Starting trend update via API",
        extra={"trends": len(request.trends), "endpoint": "/trends/run"}
    )

    report = await run_update_cycle([t.model_dump() for t in request.trends], tracker)

    if report.ok:
        status = "success"
        message = f"Updated {len(report.updated)} and created {len(report.created)} trends"
    else:
        status = "partial"
        message = f"{len(report.failed)} trends failed, {len(report.errors)} other errors"

    return TrendRunResponse(status=status, message=message, report=report.to_dict())


if __name__ == "__main__":
    uvicorn.run(
        "trendbot.trender.app:app",
        host=settings.service_host,
        port=settings.service_port or 8002,
        log_level="info",
    )
