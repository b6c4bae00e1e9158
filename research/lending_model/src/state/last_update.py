"""Slot bookkeeping shared by reserves and obligations"""
from dataclasses import dataclass

from ..math.checked import checked_sub


@dataclass
class LastUpdate:
    """Last slot a record was refreshed, and whether it changed since"""
    slot: int = 0
    stale: bool = True

    def slots_elapsed(self, current_slot: int) -> int:
        return checked_sub(current_slot, self.slot)

    def update_slot(self, slot: int) -> None:
        self.slot = slot
        self.stale = False

    def mark_stale(self) -> None:
        self.stale = True

    def is_stale(self, current_slot: int) -> bool:
        return self.stale or current_slot != self.slot
