import logging
from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count
from django.utils import timezone

from accounts.models import User
from candidates.models import Candidate

from .models import Vote

logger = logging.getLogger(__name__)

RESULTS_CACHE_KEY = "poll_results"


def invalidate_results_cache() -> None:
    """Clear cached poll results"""
    cache.delete(RESULTS_CACHE_KEY)
    logger.debug("Results cache invalidated")


def percentage(candidate_votes: int, total_votes: int) -> int:
    """
    Share of `total_votes` as a whole percent, rounded half-up.
    Returns 0 when no votes have been cast.
    """
    if total_votes <= 0:
        return 0
    share = Decimal(candidate_votes) * 100 / Decimal(total_votes)
    rounded = int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, rounded))


@dataclass
class GradeActivity:
    grade: int
    participation_rate: float


@dataclass
class TimeRemaining:
    days: int
    closing_date: str


@dataclass
class VotingStats:
    total_votes: int
    total_voters: int
    eligible_voters: int
    turnout: int
    most_active_grade: Optional[GradeActivity]
    time_remaining: Optional[TimeRemaining]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TallyEngine:
    """
    Read-only aggregation over the current votes.
    Results follow the store's current state; they are not a snapshot.
    """

    def tally(self) -> List[Candidate]:
        """
        Every candidate annotated with `vote_count`, most votes first,
        ties broken by candidate id. Votes for deleted candidates never
        join a candidate row and are skipped.
        """
        return list(
            Candidate.objects.annotate(vote_count=Count("votes")).order_by(
                "-vote_count", "id"
            )
        )

    def results(self, use_cache: bool = False) -> Dict[str, Any]:
        """
        Tally formatted for display, with each candidate's share of the tallied votes.

        Args:
            use_cache: whether to serve a cached copy (invalidated by every mutation)
        """
        if use_cache:
            cached_results = cache.get(RESULTS_CACHE_KEY)
            if cached_results is not None:
                logger.debug("Returning cached results")
                return cached_results

        candidates = self.tally()
        total_votes = sum(c.vote_count for c in candidates)

        formatted_results = {
            "total_votes": total_votes,
            "candidates": [
                {
                    "id": c.id,
                    "name": c.name,
                    "grade": c.grade,
                    "description": c.description,
                    "photo_url": c.photo_url,
                    "vote_count": c.vote_count,
                    "percentage": percentage(c.vote_count, total_votes),
                }
                for c in candidates
            ],
        }

        cache.set(
            RESULTS_CACHE_KEY,
            formatted_results,
            timeout=settings.POLL_RESULTS_CACHE_TIMEOUT,
        )
        return formatted_results

    def stats(self) -> VotingStats:
        totals = Vote.objects.aggregate(
            total_votes=Count("id"),
            total_voters=Count("voter", distinct=True),
        )
        eligible_voters = User.objects.filter(role=User.Role.STUDENT).count()

        return VotingStats(
            total_votes=totals["total_votes"],
            total_voters=totals["total_voters"],
            eligible_voters=eligible_voters,
            turnout=percentage(totals["total_voters"], eligible_voters),
            most_active_grade=self.most_active_grade(),
            time_remaining=self.time_remaining(),
        )

    def most_active_grade(self) -> Optional[GradeActivity]:
        """
        The grade with the highest ratio of votes cast for its candidates to its
        enrolled students. Grades without students are left out; ties go to the
        lowest grade. None when no student has a grade.
        """
        students_by_grade = {
            row["grade"]: row["students"]
            for row in User.objects.filter(
                role=User.Role.STUDENT, grade__isnull=False
            )
            .values("grade")
            .annotate(students=Count("id"))
            .order_by()
        }
        votes_by_grade = {
            row["candidate__grade"]: row["votes"]
            for row in Vote.objects.values("candidate__grade")
            .annotate(votes=Count("id"))
            .order_by()
        }

        best = None
        for grade in sorted(students_by_grade):
            rate = votes_by_grade.get(grade, 0) / students_by_grade[grade]
            if best is None or rate > best.participation_rate:
                best = GradeActivity(grade=grade, participation_rate=rate)
        return best

    def time_remaining(self, today: Optional[date] = None) -> Optional[TimeRemaining]:
        closes = settings.POLL_CLOSES_AT
        if closes is None:
            return None
        today = today or timezone.localdate()
        return TimeRemaining(
            days=max(0, (closes - today).days),
            closing_date=closes.isoformat(),
        )


# Singleton instance
_tally_engine: Optional[TallyEngine] = None


def get_tally_engine() -> TallyEngine:
    """Get or create the tally engine singleton"""
    global _tally_engine
    if _tally_engine is None:
        _tally_engine = TallyEngine()
    return _tally_engine
