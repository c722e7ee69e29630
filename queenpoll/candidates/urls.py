from django.urls import path

from .views import (
    CandidateAdminCreateView,
    CandidateAdminDetailView,
    CandidateDetailView,
    CandidateListView,
    GradeListView,
)

app_name = "candidates"

urlpatterns = [
    path("candidates/", CandidateListView.as_view(), name="candidate-list"),
    path("candidates/<int:pk>/", CandidateDetailView.as_view(), name="candidate-detail"),
    path("grades/", GradeListView.as_view(), name="grade-list"),
    path("admin/candidates/", CandidateAdminCreateView.as_view(), name="candidate-create"),
    path(
        "admin/candidates/<int:pk>/",
        CandidateAdminDetailView.as_view(),
        name="candidate-admin-detail",
    ),
]
