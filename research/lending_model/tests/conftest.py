"""Shared fixtures: pubkeys, collaborator stand-ins and reserve/obligation builders"""
from dataclasses import dataclass, field
from typing import List, Set, Tuple

import pytest

from lending_model.src.config import ProgramConfig
from lending_model.src.math.decimal import Decimal
from lending_model.src.state.lending_market import LendingMarket
from lending_model.src.state.obligation import Obligation
from lending_model.src.state.reserve import (
    Bonus,
    Reserve,
    ReserveCollateral,
    ReserveConfig,
    ReserveFees,
    ReserveLiquidity,
)


def pubkey(n: int) -> bytes:
    return bytes([n]) * 32


MARKET = pubkey(1)
MARKET_OWNER = pubkey(2)
OBLIGATION_OWNER = pubkey(3)
USDC_RESERVE = pubkey(10)
SOL_RESERVE = pubkey(11)
FEE_RECEIVER = pubkey(20)
HOST_RECEIVER = pubkey(21)
PROGRAM_ID = pubkey(99)


@dataclass
class StaticSigner:
    signers: Set[bytes] = field(default_factory=set)

    def verify_signer(self, account: bytes) -> bool:
        return account in self.signers


@dataclass
class RecordingTransfer:
    transfers: List[Tuple[bytes, bytes, bytes, int]] = field(default_factory=list)

    def transfer_tokens(self, source: bytes, destination: bytes, authority: bytes, amount: int) -> None:
        self.transfers.append((source, destination, authority, amount))


@dataclass
class StaticClock:
    slot: int = 0

    def current_slot(self) -> int:
        return self.slot


@dataclass
class StaticOracle:
    prices: dict = field(default_factory=dict)

    def current_price(self, account: bytes) -> Decimal:
        return self.prices[account]


def make_reserve(
    price: int = 1,
    decimals: int = 6,
    available: int = 0,
    slot: int = 0,
    loan_to_value_ratio: int = 50,
    liquidation_threshold: int = 55,
    liquidation_bonus: int = 5,
    optimal_utilization_rate: int = 80,
    min_borrow_rate: int = 0,
    optimal_borrow_rate: int = 10,
    max_borrow_rate: int = 100,
    fees: ReserveFees = None,
    oracle_account: bytes = pubkey(30),
) -> Reserve:
    """A fresh reserve in MARKET holding `available` liquidity"""
    config = ReserveConfig(
        optimal_utilization_rate=optimal_utilization_rate,
        loan_to_value_ratio=loan_to_value_ratio,
        liquidation_bonus=liquidation_bonus,
        liquidation_threshold=liquidation_threshold,
        min_borrow_rate=min_borrow_rate,
        optimal_borrow_rate=optimal_borrow_rate,
        max_borrow_rate=max_borrow_rate,
        fees=fees if fees is not None else ReserveFees(),
    )
    liquidity = ReserveLiquidity(
        mint_pubkey=pubkey(40),
        mint_decimals=decimals,
        supply_pubkey=pubkey(41),
        fee_receiver=FEE_RECEIVER,
        use_pyth_oracle=True,
        params_1=oracle_account,
        market_price=Decimal.from_integer(price),
    )
    collateral = ReserveCollateral(mint_pubkey=pubkey(42), supply_pubkey=pubkey(43))
    reserve = Reserve.new(slot, MARKET, liquidity, collateral, config, Bonus())
    if available:
        reserve.deposit_liquidity(available)
    reserve.last_update.update_slot(slot)
    return reserve


@pytest.fixture
def reserve_factory():
    return make_reserve


@pytest.fixture
def lending_market():
    return LendingMarket.new(MARKET_OWNER, b"USD".ljust(32, b"\0"))


@pytest.fixture
def obligation():
    return Obligation.new(0, MARKET, OBLIGATION_OWNER)


@pytest.fixture
def signer():
    return StaticSigner({MARKET_OWNER, OBLIGATION_OWNER})


@pytest.fixture
def token_transfer():
    return RecordingTransfer()


@pytest.fixture
def program_config():
    return ProgramConfig(PROGRAM_ID)
