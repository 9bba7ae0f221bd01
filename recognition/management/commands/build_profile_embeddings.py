# recognition/management/commands/build_profile_embeddings.py
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from recognition.profiles import MOCK_PROFILES
from recognition.services.model_loader import ensure_models
from recognition.services.profile_index import build_profile_embeddings, save_npz


class Command(BaseCommand):
    help = "Считает эмбеддинги демо-профилей и сохраняет их в .npz-кэш."

    def add_arguments(self, parser):
        parser.add_argument("--output", help="путь к .npz (по умолчанию PROFILE_EMBEDDINGS_CACHE)")

    def handle(self, *args, **options):
        output = options.get("output") or getattr(settings, "PROFILE_EMBEDDINGS_CACHE", None)
        if not output:
            raise CommandError("No output path: pass --output or set PROFILE_EMBEDDINGS_CACHE")

        analyzer = ensure_models()
        entries = build_profile_embeddings(analyzer, MOCK_PROFILES)
        if not entries:
            raise CommandError("No profile embeddings could be built. Check PROFILE_IMAGES_DIR and network.")

        save_npz(Path(output), entries)
        for e in entries:
            self.stdout.write(f"  {e.label}: {len(e.descriptors)} descriptor(s), dim={e.descriptors[0].shape[0]}")
        self.stdout.write(self.style.SUCCESS(f"Saved {len(entries)}/{len(MOCK_PROFILES)} profiles -> {output}"))
