from django.db import models
from django.conf import settings
from django.utils import timezone

class Vote(models.Model):
    # one row per voter; the unique constraint backs the single-vote rule
    voter = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='vote')
    # no FK constraint: deleting candidates leaves their votes behind until the election is reset
    candidate = models.ForeignKey(
        'candidates.Candidate',
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='votes',
    )
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']

    def __str__(self):
        """
        Returns a string representation of the Vote instance, useful for the Django Admin."""
        return f"Vote by {self.voter_id} for candidate {self.candidate_id}"
