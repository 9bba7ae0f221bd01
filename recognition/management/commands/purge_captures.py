# recognition/management/commands/purge_captures.py
import logging
from datetime import timedelta

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.management.base import BaseCommand
from django.utils import timezone

logger = logging.getLogger("app")

CAPTURE_DIRS = ("captures", "crops")


class Command(BaseCommand):
    help = "Удаляет снимки старше CAPTURE_RETENTION_HOURS (по умолчанию 24 ч)."

    def add_arguments(self, parser):
        parser.add_argument("--hours", type=int, default=None)
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        hours = options["hours"]
        if hours is None:
            hours = int(getattr(settings, "CAPTURE_RETENTION_HOURS", 24))
        cutoff = timezone.now() - timedelta(hours=hours)

        removed = 0
        for folder in CAPTURE_DIRS:
            if not default_storage.exists(folder):
                continue
            _, files = default_storage.listdir(folder)
            for name in files:
                path = f"{folder}/{name}"
                if default_storage.get_modified_time(path) >= cutoff:
                    continue
                if not options["dry_run"]:
                    default_storage.delete(path)
                removed += 1

        verb = "Would remove" if options["dry_run"] else "Removed"
        logger.info("purge_captures: %s %d file(s) older than %dh", verb.lower(), removed, hours)
        self.stdout.write(f"{verb} {removed} file(s) older than {hours}h")
