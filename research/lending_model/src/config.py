"""Program configuration supplied by the caller"""
from dataclasses import dataclass

from .constants import PUBKEY_BYTES, PROGRAM_VERSION


@dataclass(frozen=True)
class ProgramConfig:
    """Identity of the deployed lending program, passed to operations that need it"""
    program_id: bytes
    version: int = PROGRAM_VERSION

    def __post_init__(self):
        if len(self.program_id) != PUBKEY_BYTES:
            raise ValueError(f"program_id must be {PUBKEY_BYTES} bytes")
