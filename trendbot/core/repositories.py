"""Repository layer for trend records.

Async operations over the ``trends`` table. Every function takes the
session it works in; callers own session lifetime. Database failures are
rolled back and re-raised as :class:`PersistenceError`.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trendbot.core.errors import PersistenceError
from trendbot.core.logging import get_logger
from trendbot.core.models import Trend

logger = get_logger(__name__)

# Columns a merge or create may write
TREND_FIELDS = (
    'name', 'rank', 'sentiment_score', 'sentiment_description',
    'tweets_analyzed', 'keywords', 'tweets', 'articles',
)


async def get_trend_by_name(session: AsyncSession, name: str) -> Optional[Trend]:
    """
    Find the trend record for *name*.

    Args:
        session: Database session
        name: Trend name

    Returns:
        Trend object or None if not found
    """
    try:
        stmt = select(Trend).where(Trend.name == name)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Error loading trend '{name}': {e}")
        raise PersistenceError(f"Could not load trend '{name}': {e}") from e


async def create_trend(session: AsyncSession, fields: Dict[str, Any]) -> Trend:
    """
    Insert a new trend record.

    Args:
        session: Database session
        fields: Column values; must include 'name'

    Returns:
        The persisted Trend
    """
    if not fields.get('name'):
        raise ValueError("Trend record missing required 'name' field")

    trend = Trend(**{key: fields[key] for key in TREND_FIELDS if key in fields})
    try:
        session.add(trend)
        await session.commit()
        await session.refresh(trend)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error creating trend '{fields['name']}': {e}")
        raise PersistenceError(f"Could not create trend '{fields['name']}': {e}") from e

    logger.info(f"Created new trend: {trend.name} (rank {trend.rank})")
    return trend


async def update_trend(session: AsyncSession, name: str, fields: Dict[str, Any]) -> bool:
    """
    Overwrite columns of the trend identified by *name* in one statement.

    Args:
        session: Database session
        name: Trend name
        fields: Column values to set ('name' is ignored)

    Returns:
        True if a row was updated, False if no trend has that name
    """
    values = {key: fields[key] for key in TREND_FIELDS if key in fields and key != 'name'}
    if not values:
        return False

    try:
        stmt = (
            update(Trend)
            .where(Trend.name == name)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error updating trend '{name}': {e}")
        raise PersistenceError(f"Could not update trend '{name}': {e}") from e

    updated = result.rowcount > 0
    logger.debug(f"Updated trend {name}: {sorted(values)} (matched={updated})")
    return updated


async def remove_old_trends(session: AsyncSession, current_names: Iterable[str]) -> int:
    """
    Delete every trend whose name is not in *current_names*.

    Args:
        session: Database session
        current_names: Names still trending

    Returns:
        Number of trends deleted
    """
    names = sorted(set(current_names))
    try:
        stmt = (
            delete(Trend)
            .where(Trend.name.not_in(names))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error removing old trends: {e}")
        raise PersistenceError(f"Could not remove old trends: {e}") from e

    removed = result.rowcount or 0
    if removed:
        logger.info(f"Removed {removed} trends no longer trending")
    return removed


async def list_trends(session: AsyncSession) -> List[Trend]:
    """
    Get all trend records ordered by rank.

    Args:
        session: Database session

    Returns:
        List of Trend objects
    """
    try:
        stmt = select(Trend).order_by(Trend.rank.asc(), Trend.name.asc())
        result = await session.execute(stmt)
        trends = result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Error listing trends: {e}")
        raise PersistenceError(f"Could not list trends: {e}") from e

    logger.debug(f"Retrieved {len(trends)} trends")
    return list(trends)


def trend_to_dict(trend: Trend) -> Dict[str, Any]:
    """Serialize a trend row for API responses."""
    return {
        'name': trend.name,
        'rank': trend.rank,
        'sentiment_score': trend.sentiment_score,
        'sentiment_description': trend.sentiment_description,
        'tweets_analyzed': trend.tweets_analyzed,
        'keywords': list(trend.keywords or []),
        'tweets': list(trend.tweets or []),
        'articles': list(trend.articles or []),
        'updated_at': trend.updated_at.isoformat() if trend.updated_at else None,
    }
