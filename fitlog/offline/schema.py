# =============================================================================
# fitlog/offline/schema.py
# Wire <-> local record mapping per entity
# =============================================================================
"""
Each entity has one SchemaMapping that converts records between the REST
wire format and the local store format:

    workout   {workout_id, name, description}       <-> {id, name, description}
    exercise  {exercise_id, rest, media_URL, ...}   <-> {id, rest_seconds, media_url, ...}
    weight    {weight_id?, date, value}             <-> {id?, date: YYYY-MM-DD, weight}
    bodyfat   {bodyfat_id?, date, value}            <-> {id?, date: YYYY-MM-DD, body_fat}

Fields not named by a mapping pass through untouched, so server additions
(user_id, timestamps) survive a round trip.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


def date_only(value: Any) -> Any:
    """Trim an ISO timestamp to its YYYY-MM-DD date part."""
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-":
        return value[:10]
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d")
    return value


@dataclass(frozen=True)
class SchemaMapping:
    """
    Bidirectional field renaming for one entity.

    Attributes:
        entity: Entity type name
        wire_id: Name of the primary key on the wire
        fields: Wire field name -> local field name (id excluded)
        local_transforms: Local field name -> value transform applied by to_local
    """
    entity: str
    wire_id: str
    fields: Dict[str, str] = field(default_factory=dict)
    local_transforms: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def to_local(self, wire: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a server record to the local form."""
        local: Dict[str, Any] = {}
        record_id = wire.get(self.wire_id)
        if record_id is None:
            record_id = wire.get("id")
        if record_id is not None:
            local["id"] = record_id

        for key, value in wire.items():
            if key in (self.wire_id, "id"):
                continue
            local[self.fields.get(key, key)] = value

        for key, transform in self.local_transforms.items():
            if key in local:
                local[key] = transform(local[key])
        return local

    def to_wire(self, local: Dict[str, Any], include_id: bool = False) -> Dict[str, Any]:
        """
        Convert a local record to a request body.

        Local-only markers (keys starting with "_") are never sent. Temporary
        ids in the body are swapped for server ids before an online write and
        again when the queue replays it.
        """
        reverse = {v: k for k, v in self.fields.items()}
        wire: Dict[str, Any] = {}
        for key, value in local.items():
            if key.startswith("_"):
                continue
            if key == "id":
                if include_id:
                    wire[self.wire_id] = value
                continue
            wire[reverse.get(key, key)] = value
        return wire


def is_temp_id(value: Any) -> bool:
    """True for ids minted locally while offline ("temp-<millis>")."""
    return isinstance(value, str) and value.startswith("temp-")


def replace_temp_ids(value: Any, mappings: Dict[str, Any]) -> Any:
    """Swap mapped temporary ids anywhere inside a record or request body."""
    if isinstance(value, dict):
        return {k: replace_temp_ids(v, mappings) for k, v in value.items()}
    if isinstance(value, list):
        return [replace_temp_ids(v, mappings) for v in value]
    if is_temp_id(value):
        return mappings.get(value, value)
    return value


def has_temp_ids(value: Any) -> bool:
    """True if a temporary id is left anywhere inside `value`."""
    if isinstance(value, dict):
        return any(has_temp_ids(v) for v in value.values())
    if isinstance(value, list):
        return any(has_temp_ids(v) for v in value)
    return is_temp_id(value)


WORKOUT_MAPPING = SchemaMapping(entity="workout", wire_id="workout_id")

EXERCISE_MAPPING = SchemaMapping(
    entity="exercise",
    wire_id="exercise_id",
    fields={
        "rest": "rest_seconds",
        "media_URL": "media_url",
    },
)

WEIGHT_MAPPING = SchemaMapping(
    entity="weight",
    wire_id="weight_id",
    fields={"value": "weight"},
    local_transforms={"date": date_only},
)

BODYFAT_MAPPING = SchemaMapping(
    entity="bodyfat",
    wire_id="bodyfat_id",
    fields={"value": "body_fat"},
    local_transforms={"date": date_only},
)

MAPPINGS = {
    "workout": WORKOUT_MAPPING,
    "exercise": EXERCISE_MAPPING,
    "weight": WEIGHT_MAPPING,
    "bodyfat": BODYFAT_MAPPING,
}


def get_mapping(entity: str) -> Optional[SchemaMapping]:
    return MAPPINGS.get(entity)
