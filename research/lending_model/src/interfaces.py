"""Capabilities the surrounding runtime provides to the lending model

Nothing here is implemented by the model itself: token transfers, oracle
reads, the clock and signature checks belong to the execution environment.
Operations take these as arguments so tests and research tooling can
substitute their own.
"""
from typing import Protocol

from .math.decimal import Decimal


class TokenTransfer(Protocol):
    def transfer_tokens(self, source: bytes, destination: bytes, authority: bytes, amount: int) -> None:
        """Move amount tokens, raising on failure"""
        ...


class PriceOracle(Protocol):
    def current_price(self, account: bytes) -> Decimal:
        """Price of one whole token in the market quote currency"""
        ...


class SlotClock(Protocol):
    def current_slot(self) -> int:
        ...


class SignerVerifier(Protocol):
    def verify_signer(self, account: bytes) -> bool:
        ...


class FlashLoanReceiver(Protocol):
    def receive_flash_loan(self, repay_amount: int, callback_data: bytes) -> int:
        """Use the borrowed liquidity and return how much was sent back to the reserve"""
        ...
