from django.urls import path

from .views import (
    MyVoteView,
    ResetCandidatesView,
    ResetElectionView,
    ResultsView,
    StatsView,
    VoteCreateView,
)

app_name = "voting"

urlpatterns = [
    path("votes/", VoteCreateView.as_view(), name="cast_vote"),
    path("votes/mine/", MyVoteView.as_view(), name="my_vote"),
    path("results/", ResultsView.as_view(), name="results"),
    path("stats/", StatsView.as_view(), name="stats"),
    path("admin/election/reset/", ResetElectionView.as_view(), name="reset_election"),
    path("admin/candidates/reset/", ResetCandidatesView.as_view(), name="reset_candidates"),
]
