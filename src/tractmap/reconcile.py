"""Add/remove diffing of presented overlays by region id."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Region


@dataclass(frozen=True, slots=True)
class OverlayDiff:
    to_add: tuple[Region, ...]
    to_remove: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove

    def apply(self, current_ids: Sequence[str]) -> tuple[str, ...]:
        """Presented ids after removing then adding, keeping existing order."""
        removed = set(self.to_remove)
        kept = [region_id for region_id in current_ids if region_id not in removed]
        return (*kept, *(region.region_id for region in self.to_add))


def diff_overlays(current_ids: Iterable[str], desired: Sequence[Region]) -> OverlayDiff:
    """Set difference over region ids; both sides keep their input order."""
    current = list(dict.fromkeys(current_ids))
    desired_ids = {region.region_id for region in desired}
    current_set = set(current)
    to_add: list[Region] = []
    queued: set[str] = set()
    for region in desired:
        if region.region_id in current_set or region.region_id in queued:
            continue
        queued.add(region.region_id)
        to_add.append(region)
    to_remove = tuple(region_id for region_id in current if region_id not in desired_ids)
    return OverlayDiff(to_add=tuple(to_add), to_remove=to_remove)
