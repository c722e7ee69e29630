import logging

from django.conf import settings
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsJudge
from queenpoll.exceptions import CandidateNotFoundError

from .filters import CandidateFilter
from .serializers import CandidateSerializer
from .services import get_candidate_service

logger = logging.getLogger("candidates")


class CandidateListView(generics.ListAPIView):
    """
    API endpoint listing candidates, optionally filtered by `?grade=`.
    """

    serializer_class = CandidateSerializer
    filterset_class = CandidateFilter

    def get_queryset(self):
        return get_candidate_service().list_candidates()


class CandidateDetailView(generics.RetrieveAPIView):
    serializer_class = CandidateSerializer

    def get_object(self):
        candidate = get_candidate_service().get_candidate(self.kwargs["pk"])
        if candidate is None:
            raise CandidateNotFoundError()
        return candidate


class CandidateAdminCreateView(APIView):
    """
    API endpoint for judges to add candidates.
    """

    permission_classes = [IsJudge]

    def post(self, request):
        logger.debug(f"Incoming data: {request.data}")
        candidate = get_candidate_service().create_candidate(request.user, request.data)
        return Response(CandidateSerializer(candidate).data, status=status.HTTP_201_CREATED)


class CandidateAdminDetailView(APIView):
    """
    API endpoint for judges to update or remove a candidate.

    PUT/PATCH: partial update of the candidate's fields.
    DELETE: removes the candidate; its votes stay until the election is reset.
    """

    permission_classes = [IsJudge]

    def put(self, request, pk):
        logger.debug(f"Incoming data: {request.data}")
        candidate = get_candidate_service().update_candidate(request.user, pk, request.data)
        if candidate is None:
            raise CandidateNotFoundError()
        return Response(CandidateSerializer(candidate).data)

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        if not get_candidate_service().delete_candidate(request.user, pk):
            raise CandidateNotFoundError()
        return Response(status=status.HTTP_204_NO_CONTENT)


class GradeListView(APIView):
    """
    API endpoint listing the grades offered to the grade filter.
    """

    def get(self, request):
        return Response({"grades": settings.POLL_GRADES})
