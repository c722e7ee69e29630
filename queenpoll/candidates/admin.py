import logging

from django.contrib import admin
from django.db import transaction

from voting.tally import invalidate_results_cache

from .models import Candidate

logger = logging.getLogger("candidates")


class CandidateAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "grade")
    list_filter = ("grade",)
    search_fields = ("name",)

    def has_add_permission(self, request):
        return request.user.is_superuser

    def has_view_permission(self, request, obj=None):
        return request.user.is_staff or request.user.is_superuser

    def has_change_permission(self, request, obj=None):
        return request.user.is_superuser

    def save_model(self, request, obj, form, change):
        if change:
            logger.info(
                f"Candidate updated by admin: {request.user.username} - {obj.id}"
            )
        else:
            logger.info(
                f"Candidate added by admin : {request.user.username} - {obj.id}"
            )
        super().save_model(request, obj, form, change)
        transaction.on_commit(invalidate_results_cache)


admin.site.register(Candidate, CandidateAdmin)
