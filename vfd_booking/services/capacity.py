"""Slot accounting for sign-up sheet groups.

Groups are stored as JSON in the shape the member portal has always written::

    [{"name": "Kitchen Crew",
      "positions": [{"name": "Griddle", "maxSlots": 2,
                     "members": [{"id": "...", "note": "...", "remindMe": true}]}]}]

``maxSlots`` of ``-1`` or ``0`` means unlimited. Functions here never mutate
their input; writers get a fresh structure back and persist it whole.
"""

from __future__ import annotations

import copy
from typing import Any

from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import CapacityError, NotFoundError, ValidationError

Groups = list[dict[str, Any]]

UNLIMITED = -1


def max_slots(position: dict[str, Any]) -> int:
    return int(position.get("maxSlots", UNLIMITED))


def members_of(position: dict[str, Any]) -> list[dict[str, Any]]:
    return position.get("members") or []


def is_unlimited(position: dict[str, Any]) -> bool:
    return max_slots(position) <= 0


def has_open_slot(position: dict[str, Any]) -> bool:
    return is_unlimited(position) or len(members_of(position)) < max_slots(position)


def open_slots(position: dict[str, Any]) -> int | None:
    """Remaining slots, or ``None`` when the position is unlimited."""
    if is_unlimited(position):
        return None
    return max(0, max_slots(position) - len(members_of(position)))


def available_positions(groups: Groups, group_name: str) -> list[dict[str, Any]]:
    for group in groups:
        if group.get("name") == group_name:
            return [p for p in group.get("positions") or [] if has_open_slot(p)]
    return []


def find_position(groups: Groups, group_name: str, position_name: str) -> tuple[int, int]:
    for gi, group in enumerate(groups):
        if group.get("name") != group_name:
            continue
        for pi, position in enumerate(group.get("positions") or []):
            if position.get("name") == position_name:
                return gi, pi
        raise NotFoundError(
            ErrorCode.SIGNUP_POSITION_NOT_FOUND.value,
            f"position {position_name!r} no longer exists in {group_name!r}",
        )
    raise NotFoundError(
        ErrorCode.SIGNUP_GROUP_NOT_FOUND.value, f"group {group_name!r} no longer exists"
    )


def is_signed_up(position: dict[str, Any], member_id: str) -> bool:
    return any(m.get("id") == member_id for m in members_of(position))


def append_member(
    groups: Groups,
    gi: int,
    pi: int,
    member_id: str,
    note: str | None = None,
    remind_me: bool = False,
) -> Groups:
    position = groups[gi]["positions"][pi]
    if not has_open_slot(position):
        raise CapacityError(
            ErrorCode.SIGNUP_POSITION_FULL.value, "This position has no more available slots"
        )

    entry: dict[str, Any] = {"id": member_id, "remindMe": bool(remind_me)}
    if note:
        entry["note"] = note

    updated = copy.deepcopy(groups)
    target = updated[gi]["positions"][pi]
    target["members"] = [*members_of(target), entry]
    return updated


def remove_member(groups: Groups, gi: int, pi: int, member_id: str) -> Groups:
    position = groups[gi]["positions"][pi]
    if not is_signed_up(position, member_id):
        raise NotFoundError(ErrorCode.SIGNUP_NOT_FOUND.value, "not signed up for this position")

    updated = copy.deepcopy(groups)
    target = updated[gi]["positions"][pi]
    target["members"] = [m for m in members_of(target) if m.get("id") != member_id]
    return updated


def slot_totals(groups: Groups) -> tuple[int, int]:
    """``(filled, total)``; unlimited positions contribute nothing to ``total``."""
    filled = total = 0
    for group in groups:
        for position in group.get("positions") or []:
            filled += len(members_of(position))
            if not is_unlimited(position):
                total += max_slots(position)
    return filled, total


def member_ids(groups: Groups) -> list[str]:
    return [
        m["id"]
        for group in groups
        for position in group.get("positions") or []
        for m in members_of(position)
        if m.get("id")
    ]


def normalize_groups(groups: list[dict[str, Any]]) -> Groups:
    """Validate a freshly authored groups structure and return it with empty member lists."""
    if not groups:
        raise ValidationError(
            ErrorCode.SIGNUP_SHEET_INVALID.value, "Please add at least one group with positions"
        )

    normalized: Groups = []
    for group in groups:
        name = (group.get("name") or "").strip()
        positions = group.get("positions") or []
        if not name or not positions or not all((p.get("name") or "").strip() for p in positions):
            raise ValidationError(
                ErrorCode.SIGNUP_SHEET_INVALID.value,
                "All groups must have a name and at least one position with a name",
            )

        seen: set[str] = set()
        cleaned = []
        for position in positions:
            position_name = position["name"].strip()
            if position_name in seen:
                raise ValidationError(
                    ErrorCode.SIGNUP_SHEET_INVALID.value,
                    f"duplicate position {position_name!r} in group {name!r}",
                )
            seen.add(position_name)
            try:
                slots = int(position.get("maxSlots", UNLIMITED))
            except (TypeError, ValueError):
                raise ValidationError(
                    ErrorCode.SIGNUP_SHEET_INVALID.value, "maxSlots must be an integer"
                ) from None
            cleaned.append({"name": position_name, "maxSlots": slots, "members": []})
        normalized.append({"name": name, "positions": cleaned})

    if len({g["name"] for g in normalized}) != len(normalized):
        raise ValidationError(ErrorCode.SIGNUP_SHEET_INVALID.value, "group names must be unique")
    return normalized
