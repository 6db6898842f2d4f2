from __future__ import annotations

from django.core.management.base import BaseCommand

from bookings.seed import DEFAULT_ROOMS, seed_default_rooms


class Command(BaseCommand):
    help = (
        "Create the default meeting rooms, matched by room number. "
        "Rooms whose number already exists are left untouched unless --update-existing is given."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--update-existing",
            action="store_true",
            help=(
                "Reset the name, capacity and description of existing default rooms "
                "and reactivate them. Rooms with other numbers are never touched."
            ),
        )

    def handle(self, *args, **options):
        result = seed_default_rooms(update_existing=options["update_existing"])
        if options["verbosity"] > 1:
            numbers = ", ".join(seed.number for seed in DEFAULT_ROOMS)
            self.stdout.write(f"Default room numbers: {numbers}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completed: created={result['created']} updated={result['updated']} skipped={result['skipped']}"
            )
        )
