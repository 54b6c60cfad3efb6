"""Short explanations of the well-known ``types.xml`` tags and flags."""

from __future__ import annotations

from .document import Field

_FLAG_NOTE = (
    "If the flag is set to 1, the item won't spawn if there are already "
    "a nominal number of items for this flag."
)

FIELD_HINTS = {
    "nominal": "The nominal (wanted) amount in the server. Same as max if max is not used.",
    "lifetime": (
        "Seconds it takes for the item to despawn when it lies on the ground. "
        "Does not apply if the item is ruined."
    ),
    "restock": (
        "Seconds after one of the same item despawns or is picked up "
        "before a new one is spawned."
    ),
    "min": "Minimum quantity of the item to spawn across the entire map.",
    "quantmin": "Minimum quantity in a spawned stack, e.g. rounds in an ammo box.",
    "quantmax": "Maximum quantity in a spawned stack, e.g. rounds in an ammo box.",
    "cost": "Loot spawning prioritizer.",
    "category": "The location class of where this item can spawn.",
    "usage": "The location class of where this item can spawn.",
    "tag": "The location class of where this item can spawn.",
    "value": "The map tier the item spawns in.",
    "flags": "Boolean count flags, see the individual attributes.",
}

ATTRIBUTE_HINTS = {
    "count_in_cargo": "Counts items in cargo (tents, boxes, vehicles) towards nominal. " + _FLAG_NOTE,
    "count_in_hoarder": "Counts items held by zombies towards nominal. " + _FLAG_NOTE,
    "count_in_map": "Counts items lying on the map towards nominal. " + _FLAG_NOTE,
    "count_in_player": "Counts items carried by players towards nominal. " + _FLAG_NOTE,
    "crafted": "Counts crafted items towards nominal. " + _FLAG_NOTE,
    "deloot": "Counts items from dynamic events (e.g. helicopter crashes). " + _FLAG_NOTE,
    "name": "The location class of where this item can spawn.",
}


def hint_for(item: Field) -> str:
    if item.name in FIELD_HINTS:
        text = FIELD_HINTS[item.name]
    else:
        text = f"Unknown field <{item.name}>."
    if item.attributes and item.name == "flags":
        lines = [text]
        for attr in item.attributes:
            lines.append(f"{attr}: {ATTRIBUTE_HINTS.get(attr, 'unknown attribute')}")
        return "\n\n".join(lines)
    return text
