"""Aggregate and rank recommendations from several seed titles."""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from watchhive.core.errors import UpstreamFetchError
from watchhive.models.media import MediaType, Recommendation
from watchhive.services.similar_titles import find_similar_titles
from watchhive.services.tmdb import MetadataGateway

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20

CandidateKey = Tuple[MediaType, int]


class _Candidate:
    """A deduplicated recommendation and the seeds that produced it."""

    def __init__(self, item: dict, media_type: MediaType) -> None:
        self.item = item
        self.media_type = media_type
        self.sources: set[str] = set()
        self.source_ids: set[int] = set()
        self.similarity: Optional[float] = None

    def sort_key(self):
        # Similarity matches first, then stronger similarity, then
        # more seeds in agreement, then rating
        return (
            0 if self.similarity is not None else 1,
            -(self.similarity or 0.0),
            -len(self.sources),
            -(self.item.get("vote_average") or 0.0),
        )

    def to_model(self) -> Recommendation:
        item = self.item
        return Recommendation(
            id=item["id"],
            media_type=self.media_type,
            title=item.get("title") or item.get("name") or "Unknown",
            overview=item.get("overview") or "",
            poster_path=item.get("poster_path"),
            release_date=item.get("release_date") or item.get("first_air_date") or None,
            vote_average=item.get("vote_average") or 0.0,
            vote_count=item.get("vote_count") or 0,
            popularity=item.get("popularity") or 0.0,
            source_ids=sorted(self.source_ids),
            similarity=self.similarity,
        )


class RecommendationScorer:
    """Fetch per-seed recommendation lists, merge them and rank the union."""

    def __init__(self, gateway: MetadataGateway, limit: int = DEFAULT_LIMIT) -> None:
        self.gateway = gateway
        self.limit = limit

    async def _seed_recommendations(
        self, media_type: MediaType, content_id: int
    ) -> List[dict]:
        try:
            return await self.gateway.get_recommendations(media_type, content_id)
        except UpstreamFetchError as exc:
            logger.warning(
                "Skipping recommendations for %s %s: %s", media_type.value, content_id, exc
            )
            return []

    async def recommend(
        self,
        movie_ids: Iterable[int] = (),
        series_ids: Iterable[int] = (),
        titles: Iterable[str] = (),
        media_type: Optional[MediaType] = None,
        limit: Optional[int] = None,
    ) -> List[Recommendation]:
        seeds: List[CandidateKey] = [(MediaType.MOVIE, i) for i in movie_ids]
        seeds += [(MediaType.SERIES, i) for i in series_ids]
        titles = [t for t in titles if t and t.strip()]

        direct_results, similar_results = await asyncio.gather(
            asyncio.gather(*[self._seed_recommendations(mt, cid) for mt, cid in seeds]),
            asyncio.gather(
                *[find_similar_titles(self.gateway, t, media_type) for t in titles]
            ),
        )

        candidates: Dict[CandidateKey, _Candidate] = {}

        def candidate_for(item: dict, item_type: MediaType) -> Optional[_Candidate]:
            if "id" not in item:
                return None
            key = (item_type, item["id"])
            if key not in candidates:
                candidates[key] = _Candidate(item, item_type)
            return candidates[key]

        for (seed_type, seed_id), items in zip(seeds, direct_results):
            for item in items:
                candidate = candidate_for(item, seed_type)
                if candidate is not None:
                    candidate.sources.add(f"{seed_type.value}:{seed_id}")
                    candidate.source_ids.add(seed_id)

        for title, items in zip(titles, similar_results):
            for item in items:
                candidate = candidate_for(item, item["media_type"])
                if candidate is None:
                    continue
                candidate.sources.add(f"title:{title.lower().strip()}")
                score = item["similarity"]
                if candidate.similarity is None or score > candidate.similarity:
                    candidate.similarity = score

        ranked = sorted(candidates.values(), key=lambda c: c.sort_key())
        return [c.to_model() for c in ranked[: limit or self.limit]]
