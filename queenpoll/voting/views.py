import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsJudge

from .serializers import VoteCreateSerializer, VoteSerializer
from .services import get_voting_service
from .tally import get_tally_engine

# __name__ = 'voting.views' automatically
logger = logging.getLogger(__name__)


class VoteCreateView(APIView):
    """
    API endpoint for casting the caller's single vote.
    """

    # Ensure that only authenticated users can access that endpoint.
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = VoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # failures surface as PollError subclasses, rendered by the exception handler
        vote = get_voting_service().cast_vote(
            voter_id=request.user.pk,
            candidate_id=serializer.validated_data["candidate_id"],
        )
        return Response(
            {
                "status": "success",
                "message": "Vote cast successfully.",
                "data": VoteSerializer(vote).data,
            },
            status=status.HTTP_201_CREATED,
        )


class MyVoteView(APIView):
    """
    API endpoint for users to view their own vote
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        vote = get_voting_service().get_user_vote(request.user.pk)
        if vote is None:
            return Response(
                {"status": "error", "message": "You have not voted yet"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"status": "success", "data": VoteSerializer(vote).data})


class ResultsView(APIView):
    """
    API endpoint with the live tally: candidates by vote count, with percentages.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        results = get_tally_engine().results(use_cache=True)
        return Response(
            {
                "status": "success",
                "message": "Results retrived successfully",
                "data": results,
            }
        )


class StatsView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        stats = get_tally_engine().stats()
        return Response({"status": "success", "data": stats.as_dict()})


class ResetElectionView(APIView):
    """
    Judge-only: clear all votes and every voted flag, keeping candidates.
    """

    permission_classes = [IsJudge]

    def post(self, request):
        summary = get_voting_service().reset_election(request.user)
        return Response({"status": "success", "message": "Election reset", "data": summary})


class ResetCandidatesView(APIView):
    """
    Judge-only: remove every candidate.
    """

    permission_classes = [IsJudge]

    def post(self, request):
        summary = get_voting_service().reset_candidates(request.user)
        return Response({"status": "success", "message": "Candidates reset", "data": summary})
