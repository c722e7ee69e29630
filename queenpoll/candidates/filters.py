import django_filters

from .models import Candidate


class CandidateFilter(django_filters.FilterSet):
    grade = django_filters.NumberFilter(field_name="grade")

    class Meta:
        model = Candidate
        fields = ["grade"]
