import logging

from django.contrib.auth.models import AbstractUser
from django.db import models

logger = logging.getLogger("accounts")


class User(AbstractUser):
    """
    A poll participant. Students vote, judges manage candidates.
    `has_voted` is only ever written by the voting service.
    """

    class Role(models.TextChoices):
        STUDENT = "student", "Student"
        JUDGE = "judge", "Judge"

    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)
    has_voted = models.BooleanField(default=False)
    display_name = models.CharField(max_length=255, null=True, blank=True)
    # the class a student belongs to; used for per-grade participation stats
    grade = models.PositiveSmallIntegerField(null=True, blank=True)

    @property
    def is_judge(self):
        return self.role == self.Role.JUDGE

    def __str__(self):
        return self.username

    def save(self, *args, **kwargs):
        if self.pk and User.objects.filter(pk=self.pk).exists():
            logger.info(f"Updating user -> {self.username}")
        else:
            logger.info(f"Saving user: {self.username} ({self.role})")
        super().save(*args, **kwargs)
