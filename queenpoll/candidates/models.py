from django.db import models


class Candidate(models.Model):
    """
    Candidate model - represents a contestant in the poll.
    """
    name = models.CharField(max_length=255)
    # class/section; the valid set is presentation config (settings.POLL_GRADES)
    grade = models.PositiveSmallIntegerField()
    description = models.TextField()
    photo_url = models.URLField(max_length=500)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.name} - grade {self.grade}"
