"""Proximity encounter selection - Pure functions.

The proximity check only acts on the newest encounter of each batch.
"""

from exposure_watch.core.models import ProximityEncounter


def select_latest_encounter(
    encounters: list[ProximityEncounter],
) -> ProximityEncounter | None:
    """Pick the encounter with the latest start time.

    Pure function.

    Args:
        encounters: Normalised encounters in any order

    Returns:
        The most recent encounter, or None for an empty batch
    """
    if not encounters:
        return None
    return max(encounters, key=lambda e: e.start_contact_timestamp)
