from __future__ import annotations

from dataclasses import dataclass

from django.db import transaction

from .models import Room


@dataclass(frozen=True)
class RoomSeed:
    number: str
    name: str
    capacity: int
    description: str = ""


DEFAULT_ROOMS: list[RoomSeed] = [
    RoomSeed(
        number="101",
        name="Executive Room A",
        capacity=8,
        description="Executive meetings for up to 8 people. Projector, TV and air conditioning.",
    ),
    RoomSeed(
        number="102",
        name="Meeting Room B",
        capacity=12,
        description="Mid-sized meetings. Whiteboard and video conferencing.",
    ),
    RoomSeed(
        number="103",
        name="Training Room",
        capacity=20,
        description="Trainings and workshops with a flexible layout of movable tables.",
    ),
    RoomSeed(
        number="201",
        name="Coworking Room",
        capacity=6,
        description="Shared desk in a relaxed, well lit space.",
    ),
    RoomSeed(
        number="202",
        name="Private Room",
        capacity=2,
        description="Quiet single room for focused work or one-on-one appointments.",
    ),
    RoomSeed(
        number="203",
        name="Auditorium",
        capacity=50,
        description="Events, talks and presentations with a professional sound system.",
    ),
]


def seed_default_rooms(*, update_existing: bool = False) -> dict[str, int]:
    """
    Idempotently seed default Rooms, keyed by room number.

    - If update_existing is False: creates missing rooms only (does not overwrite edits).
    - If update_existing is True: updates existing rooms to match defaults.
    """
    created = 0
    updated = 0
    skipped = 0

    with transaction.atomic():
        for seed in DEFAULT_ROOMS:
            defaults = {
                "name": seed.name,
                "capacity": seed.capacity,
                "description": seed.description,
                "is_active": True,
            }

            if update_existing:
                _, was_created = Room.objects.update_or_create(number=seed.number, defaults=defaults)
                if was_created:
                    created += 1
                else:
                    updated += 1
            else:
                _, was_created = Room.objects.get_or_create(number=seed.number, defaults=defaults)
                if was_created:
                    created += 1
                else:
                    skipped += 1

    return {"created": created, "updated": updated, "skipped": skipped}
