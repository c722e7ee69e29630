import logging
from typing import Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import User
from accounts.permissions import ensure_judge
from candidates.models import Candidate
from candidates.services import get_candidate_service
from queenpoll.exceptions import (
    AlreadyVotedError,
    CandidateNotFoundError,
    NotAuthenticatedError,
    UserNotFoundError,
)

from .models import Vote
from .tally import invalidate_results_cache

logger = logging.getLogger(__name__)


class VotingService:
    """
    Centralized service for vote casting and election resets.
    The only writer of votes and of the users' `has_voted` flag.
    """

    @transaction.atomic  # Database transaction - all or nothing
    def cast_vote(self, voter_id, candidate_id) -> Vote:
        """
        Record `voter_id`'s single vote for `candidate_id`.

        Args:
            voter_id: id of the authenticated caller, or None
            candidate_id: the candidate to vote for

        Returns:
            The created Vote

        Raises:
            NotAuthenticatedError: no caller identity was supplied
            UserNotFoundError: voter_id does not resolve
            AlreadyVotedError: the voter has already voted
            CandidateNotFoundError: candidate_id does not resolve
        """
        if voter_id is None:
            raise NotAuthenticatedError()

        voter = User.objects.filter(pk=voter_id).first()
        if voter is None:
            raise UserNotFoundError()

        if voter.has_voted:
            logger.warning(f"Duplicate vote attempt by user {voter.pk}")
            raise AlreadyVotedError()

        candidate = Candidate.objects.filter(pk=candidate_id).first()
        if candidate is None:
            logger.warning(f"Vote for unknown candidate {candidate_id} by user {voter.pk}")
            raise CandidateNotFoundError()

        vote = self._commit_vote(voter, candidate)

        transaction.on_commit(invalidate_results_cache)
        logger.info(
            "Vote successfully cast.",
            extra={"vote_id": vote.pk, "voter": voter.pk},
        )
        return vote

    def _commit_vote(self, voter: User, candidate: Candidate) -> Vote:
        """
        Flip the voted flag and write the vote as one step.
        The flag is re-checked here, so two requests that both passed the early
        check cannot both succeed.
        """
        flipped = User.objects.filter(pk=voter.pk, has_voted=False).update(has_voted=True)
        if not flipped:
            logger.warning(f"Concurrent vote rejected for user {voter.pk}")
            raise AlreadyVotedError()

        try:
            with transaction.atomic():
                vote = Vote.objects.create(
                    voter=voter, candidate=candidate, timestamp=timezone.now()
                )
        except IntegrityError as e:
            # a vote row already exists for this voter
            raise AlreadyVotedError() from e

        voter.has_voted = True
        return vote

    def get_user_vote(self, voter_id) -> Optional[Vote]:
        """The voter's own vote, or None if they have not voted."""
        return Vote.objects.filter(voter_id=voter_id).first()

    @transaction.atomic
    def reset_election(self, caller) -> Dict[str, int]:
        """
        Delete every vote and clear every user's voted flag. Candidates are kept.
        """
        ensure_judge(caller)
        votes_deleted, _ = Vote.objects.all().delete()
        users_reset = User.objects.filter(has_voted=True).update(has_voted=False)
        transaction.on_commit(invalidate_results_cache)
        logger.info(
            f"Election reset by judge {caller.username}: "
            f"{votes_deleted} votes removed, {users_reset} voters reset"
        )
        return {"votes_deleted": votes_deleted, "users_reset": users_reset}

    def reset_candidates(self, caller) -> Dict[str, int]:
        """
        Delete every candidate. Existing votes are orphaned until the election is reset.
        """
        ensure_judge(caller)
        candidates_deleted = get_candidate_service().delete_all_candidates(caller)
        logger.info(
            f"Candidates reset by judge {caller.username}: {candidates_deleted} removed"
        )
        return {"candidates_deleted": candidates_deleted}


# Singleton instance
_voting_service: Optional[VotingService] = None


def get_voting_service() -> VotingService:
    """Get or create the voting service singleton"""
    global _voting_service
    if _voting_service is None:
        _voting_service = VotingService()
    return _voting_service
