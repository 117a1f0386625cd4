"""
Related-store scoring

Candidates sharing a category with the source are scored by category match
tier plus a same-city bonus. When nothing matches, the fallback ladder widens
to same-state featured stores, then any same-state store, then any store, so a
non-empty directory always yields a suggestion.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, select
import structlog

from retail_api.models import DirectoryCategoryListing, DirectoryListing

logger = structlog.get_logger(__name__)

PRIMARY_PRIMARY_SCORE = 10
PRIMARY_SECONDARY_SCORE = 7
SECONDARY_SECONDARY_SCORE = 5
SAME_LOCATION_BONUS = 5

MAX_RELATED = 6
STATE_FEATURED_LIMIT = 3


@dataclass
class ScoredListing:
    listing: DirectoryListing
    score: int = 0
    category_overlap: int = 0
    same_location: bool = False

    def sort_key(self) -> Tuple:
        return (
            -self.score,
            -self.category_overlap,
            -(self.listing.rating_avg or 0.0),
            -(self.listing.rating_count or 0),
        )


@dataclass
class RelatedResult:
    method: str
    listings: List[ScoredListing]


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def _secondary(listing: DirectoryListing) -> Set[str]:
    primary = _norm(listing.primary_category)
    return {_norm(c) for c in (listing.secondary_categories or []) if _norm(c) and _norm(c) != primary}


def category_match(source: DirectoryListing, candidate: DirectoryListing) -> Tuple[int, int]:
    """Return (category score, number of overlapping category pairs)"""
    src_primary, cand_primary = _norm(source.primary_category), _norm(candidate.primary_category)
    src_secondary, cand_secondary = _secondary(source), _secondary(candidate)

    score = 0
    overlap = 0
    if src_primary and src_primary == cand_primary:
        score += PRIMARY_PRIMARY_SCORE
        overlap += 1
    if src_primary and src_primary in cand_secondary:
        score += PRIMARY_SECONDARY_SCORE
        overlap += 1
    if cand_primary and cand_primary in src_secondary:
        score += PRIMARY_SECONDARY_SCORE
        overlap += 1
    shared = src_secondary & cand_secondary
    score += SECONDARY_SECONDARY_SCORE * len(shared)
    overlap += len(shared)
    return score, overlap


def same_location(source: DirectoryListing, candidate: DirectoryListing) -> bool:
    return (
        bool(_norm(source.city)) and bool(_norm(source.state))
        and _norm(source.city) == _norm(candidate.city)
        and _norm(source.state) == _norm(candidate.state)
    )


def score_candidates(source: DirectoryListing, candidates: Sequence[DirectoryListing]) -> List[ScoredListing]:
    """Score and order candidates; the source and non-matching candidates are dropped"""
    scored = []
    for candidate in candidates:
        if candidate.tenant_id == source.tenant_id:
            continue
        category_score, overlap = category_match(source, candidate)
        if category_score <= 0:
            continue
        local = same_location(source, candidate)
        scored.append(ScoredListing(
            listing=candidate,
            score=category_score + (SAME_LOCATION_BONUS if local else 0),
            category_overlap=overlap,
            same_location=local,
        ))
    scored.sort(key=ScoredListing.sort_key)
    return scored


class RelatedStoreFinder:
    """Reads candidates from the listing views and applies scoring and fallbacks"""

    def __init__(self, session: Session):
        self.session = session

    def _published(self, source: DirectoryListing):
        return select(DirectoryListing).where(
            DirectoryListing.is_published == True,  # noqa: E712
            DirectoryListing.tenant_id != source.tenant_id,
        )

    def _category_candidates(self, source: DirectoryListing) -> List[DirectoryListing]:
        names = [c.casefold() for c in source.categories]
        if not names:
            return []
        sharing = select(DirectoryCategoryListing.tenant_id).where(
            func.lower(DirectoryCategoryListing.category_name).in_(names)
        )
        stmt = self._published(source).where(
            or_(func.lower(DirectoryListing.primary_category).in_(names), DirectoryListing.tenant_id.in_(sharing))
        )
        return list(self.session.exec(stmt).all())

    def _best_rated(self, stmt, limit: int) -> List[DirectoryListing]:
        return list(self.session.exec(
            stmt.order_by(
                DirectoryListing.rating_avg.desc().nulls_last(),
                DirectoryListing.rating_count.desc(),
                DirectoryListing.product_count.desc(),
                DirectoryListing.slug,
            ).limit(limit)
        ).all())

    def find(self, source: DirectoryListing, limit: int = MAX_RELATED) -> RelatedResult:
        limit = max(1, min(limit, MAX_RELATED))

        matches = score_candidates(source, self._category_candidates(source))
        if matches:
            return RelatedResult("category_match", matches[:limit])

        logger.info(f"No category matches for {source.slug}, using fallback ladder")
        same_state = self._published(source)
        if source.state:
            same_state = same_state.where(func.lower(DirectoryListing.state) == source.state.lower())

            featured = self._best_rated(
                same_state.where(DirectoryListing.is_featured == True),  # noqa: E712
                min(STATE_FEATURED_LIMIT, limit),
            )
            if featured:
                return RelatedResult("same_state_featured", [ScoredListing(listing=row) for row in featured])

            nearby = self._best_rated(same_state, 1)
            if nearby:
                return RelatedResult("same_state", [ScoredListing(listing=row) for row in nearby])

        anywhere = self._best_rated(self._published(source), 1)
        if anywhere:
            return RelatedResult("any_listing", [ScoredListing(listing=row) for row in anywhere])
        return RelatedResult("none", [])
