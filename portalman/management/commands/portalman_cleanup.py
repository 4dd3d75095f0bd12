"""Management command to cleanup old verification challenges."""

from django.core.management.base import BaseCommand

from portalman.models import VerificationChallenge


class Command(BaseCommand):
    help = "Remove verification challenges expired more than CHALLENGE_CLEANUP_DAYS ago"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Override CHALLENGE_CLEANUP_DAYS setting",
        )

    def handle(self, *args, **options):
        deleted_count, _ = VerificationChallenge.cleanup_old_challenges(days=options["days"])
        self.stdout.write(
            self.style.SUCCESS(f"Deleted {deleted_count} old verification challenges.")
        )
