"""Fuzzy title matching against TMDB search results."""

import logging
import re
from typing import List, Optional

from watchhive.core.errors import UpstreamFetchError
from watchhive.models.media import MediaType
from watchhive.services.tmdb import MetadataGateway

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.3

_SEQUEL_SUFFIX = re.compile(
    r"\s+(2|3|4|5|II|III|IV|V|Part\s+\d+|Chapter\s+\d+)$", re.IGNORECASE
)
_SUBTITLE = re.compile(r"\s*:\s*.*$")


def extract_base_title(title: Optional[str]) -> str:
    """Strip sequel numbering and subtitles ("Zootopia 2" -> "Zootopia")."""
    if not title:
        return ""
    cleaned = _SEQUEL_SUFFIX.sub("", title)
    cleaned = _SUBTITLE.sub("", cleaned)
    return cleaned.strip()


def calculate_similarity(title1: Optional[str], title2: Optional[str]) -> float:
    """Score two titles between 0 and 1."""
    if not title1 or not title2:
        return 0.0

    t1 = title1.lower().strip()
    t2 = title2.lower().strip()

    if t1 == t2:
        return 1.0

    if t1 in t2 or t2 in t1:
        return 0.8

    base1 = extract_base_title(t1)
    base2 = extract_base_title(t2)
    if base1 and base2 and (base1 == base2 or base1 in base2 or base2 in base1):
        return 0.7

    words1 = t1.split()
    words2 = t2.split()
    common = [w for w in words1 if w in words2 and len(w) > 2]
    if common:
        return 0.5 + (len(common) / max(len(words1), len(words2))) * 0.2

    return 0.0


def _result_media_type(item: dict, requested: Optional[MediaType]) -> Optional[MediaType]:
    media_type = item.get("media_type")
    if media_type == "movie":
        return MediaType.MOVIE
    if media_type == "tv":
        return MediaType.SERIES
    if media_type is None and requested is not None:
        return requested
    # Skip "person" results from multi search
    return None


async def find_similar_titles(
    gateway: MetadataGateway,
    title: str,
    media_type: Optional[MediaType] = None,
    limit: int = 10,
) -> List[dict]:
    """Search TMDB for titles resembling ``title``.

    Both the title and its base title are searched. Results scoring above
    the threshold are returned best-first, excluding the title itself.
    Each result carries ``media_type`` and ``similarity``.
    """
    if not title or not title.strip():
        return []

    queries = [title]
    base_title = extract_base_title(title)
    if base_title and base_title.lower() != title.lower():
        queries.append(base_title)

    results: List[dict] = []
    seen: set[tuple[MediaType, int]] = set()
    for query in queries:
        try:
            items = await gateway.search(query, media_type)
        except UpstreamFetchError as exc:
            logger.warning("Similar-title search for '%s' failed: %s", query, exc)
            continue

        for item in items:
            item_title = item.get("title") or item.get("name")
            item_type = _result_media_type(item, media_type)
            if not item_title or item_type is None or "id" not in item:
                continue
            key = (item_type, item["id"])
            if key in seen:
                continue
            similarity = calculate_similarity(title, item_title)
            if similarity > SIMILARITY_THRESHOLD:
                seen.add(key)
                results.append({**item, "media_type": item_type, "similarity": similarity})

    results.sort(key=lambda r: (-r["similarity"], -(r.get("popularity") or 0)))

    original = title.lower().strip()
    filtered = [
        r for r in results if (r.get("title") or r.get("name") or "").lower().strip() != original
    ]
    return filtered[:limit]
