import logging

from django.core.management.base import BaseCommand, CommandError

from accounts.models import User

logger = logging.getLogger("accounts")


class Command(BaseCommand):
    help = "Provision a judge account that can manage candidates and reset the election."

    def add_arguments(self, parser):
        parser.add_argument("username")
        parser.add_argument("--password", required=True)
        parser.add_argument("--display-name", default="Judge")

    def handle(self, *args, **options):
        username = options["username"]
        if User.objects.filter(username=username).exists():
            raise CommandError(f"User '{username}' already exists.")

        judge = User.objects.create_user(
            username=username,
            password=options["password"],
            role=User.Role.JUDGE,
            display_name=options["display_name"],
        )
        logger.info("Judge account provisioned: %s", judge.username)
        self.stdout.write(self.style.SUCCESS(f"Judge '{judge.username}' created (id={judge.pk})."))
