import logging
from typing import Any, Dict, Optional

from django.db import transaction

from accounts.permissions import ensure_judge
from queenpoll.exceptions import ValidationError
from voting.tally import invalidate_results_cache

from .models import Candidate
from .serializers import CandidateSerializer

logger = logging.getLogger(__name__)


class CandidateService:
    """
    Reads and judge-only writes for candidates.
    Every write checks the caller's role before touching the store.
    """

    def list_candidates(self, grade: Optional[int] = None):
        candidates = Candidate.objects.all()
        if grade is not None:
            candidates = candidates.filter(grade=grade)
        return candidates

    def get_candidate(self, candidate_id) -> Optional[Candidate]:
        """Return the candidate, or None when the id does not resolve."""
        return Candidate.objects.filter(pk=candidate_id).first()

    def create_candidate(self, caller, data: Dict[str, Any]) -> Candidate:
        ensure_judge(caller)
        serializer = self._validated(CandidateSerializer(data=data))
        candidate = serializer.save()
        transaction.on_commit(invalidate_results_cache)
        logger.info(f"Candidate added by judge {caller.username}: {candidate.pk}")
        return candidate

    def update_candidate(self, caller, candidate_id, data: Dict[str, Any]) -> Optional[Candidate]:
        """
        Apply a partial update. Returns None when the candidate does not exist.
        """
        ensure_judge(caller)
        candidate = self.get_candidate(candidate_id)
        if candidate is None:
            return None
        serializer = self._validated(
            CandidateSerializer(candidate, data=data, partial=True)
        )
        candidate = serializer.save()
        transaction.on_commit(invalidate_results_cache)
        logger.info(f"Candidate updated by judge {caller.username}: {candidate.pk}")
        return candidate

    def delete_candidate(self, caller, candidate_id) -> bool:
        """
        Delete one candidate. Votes cast for it are left in place.
        """
        ensure_judge(caller)
        deleted, _ = Candidate.objects.filter(pk=candidate_id).delete()
        if deleted:
            transaction.on_commit(invalidate_results_cache)
            logger.info(f"Candidate deleted by judge {caller.username}: {candidate_id}")
        return bool(deleted)

    @transaction.atomic
    def delete_all_candidates(self, caller) -> int:
        ensure_judge(caller)
        deleted, _ = Candidate.objects.all().delete()
        transaction.on_commit(invalidate_results_cache)
        return deleted

    def _validated(self, serializer):
        if not serializer.is_valid():
            logger.warning(f"Candidate data rejected: {serializer.errors}")
            raise ValidationError(errors=dict(serializer.errors), message="Invalid candidate data")
        return serializer


# Singleton instance
_candidate_service: Optional[CandidateService] = None


def get_candidate_service() -> CandidateService:
    """Get or create the candidate service singleton"""
    global _candidate_service
    if _candidate_service is None:
        _candidate_service = CandidateService()
    return _candidate_service
