"""Release-date checks for episodes and seasons.

An episode counts as released when its air date (or, lacking one, its
season's air date) is today or earlier. Missing or unparsable dates fail
open: the item is treated as released.
"""

from datetime import date
from typing import Any, Iterable, List, Optional


def _air_date(item: Any) -> Optional[str]:
    if item is None:
        return None
    if isinstance(item, dict):
        value = item.get("air_date")
    else:
        value = getattr(item, "air_date", None)
    return value or None


def is_date_released(value: str, today: Optional[date] = None) -> bool:
    """True if the ISO date ``value`` is on or before ``today``."""
    today = today or date.today()
    try:
        release_date = date.fromisoformat(str(value).strip()[:10])
    except (TypeError, ValueError):
        return True
    return release_date <= today


def is_released(episode: Any, season: Any = None, today: Optional[date] = None) -> bool:
    """Whether ``episode`` has aired, using ``season``'s date as a fallback."""
    air_date = _air_date(episode) or _air_date(season)
    if not air_date:
        return True
    return is_date_released(air_date, today)


def is_season_released(season: Any, today: Optional[date] = None) -> bool:
    """Season-level gate: only the season's own date is considered."""
    return is_released(None, season, today)


def released_episodes(
    episodes: Iterable[Any], season: Any = None, today: Optional[date] = None
) -> List[Any]:
    return [ep for ep in episodes if is_released(ep, season, today)]
