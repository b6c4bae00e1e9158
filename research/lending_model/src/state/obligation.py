"""Obligation state management"""
from dataclasses import dataclass, field
from typing import List, Tuple

from ..constants import MAX_OBLIGATION_RESERVES, NULL_PUBKEY, PROGRAM_VERSION, U64_MAX, UNINITIALIZED_VERSION
from ..errors import (
    CapacityExceededError,
    DuplicateReserveEntryError,
    InvalidAccountInputError,
    NegativeInterestRateError,
    WithdrawTooLargeError,
)
from ..math.checked import checked_add, checked_div
from ..math.decimal import Decimal
from .last_update import LastUpdate


@dataclass
class ObligationCollateral:
    """Collateral deposited into one reserve"""
    deposit_reserve: bytes = NULL_PUBKEY
    deposited_amount: int = 0
    market_value: Decimal = field(default_factory=Decimal.zero)
    index: Decimal = field(default_factory=Decimal.zero)  # l-token mining index at last accrual

    def deposit(self, collateral_amount: int) -> None:
        self.deposited_amount = checked_add(self.deposited_amount, collateral_amount, limit=U64_MAX)

    def withdraw(self, collateral_amount: int) -> None:
        if collateral_amount > self.deposited_amount:
            raise WithdrawTooLargeError("Withdraw amount cannot exceed deposited amount")
        self.deposited_amount -= collateral_amount


@dataclass
class ObligationLiquidity:
    """Liquidity borrowed from one reserve"""
    borrow_reserve: bytes = NULL_PUBKEY
    cumulative_borrow_rate_wads: Decimal = field(default_factory=Decimal.one)
    borrowed_amount_wads: Decimal = field(default_factory=Decimal.zero)
    market_value: Decimal = field(default_factory=Decimal.zero)
    index: Decimal = field(default_factory=Decimal.zero)  # borrow mining index at last accrual

    def accrue_interest(self, cumulative_borrow_rate_wads: Decimal) -> None:
        """Bring the debt up to the reserve's cumulative borrow rate"""
        if cumulative_borrow_rate_wads < self.cumulative_borrow_rate_wads:
            raise NegativeInterestRateError("Interest rate cannot be negative")
        if cumulative_borrow_rate_wads == self.cumulative_borrow_rate_wads:
            return
        # borrowed * new / old in one step, truncating once
        self.borrowed_amount_wads = Decimal(checked_div(
            self.borrowed_amount_wads.value * cumulative_borrow_rate_wads.value,
            self.cumulative_borrow_rate_wads.value,
        ))
        self.cumulative_borrow_rate_wads = cumulative_borrow_rate_wads

    def borrow(self, borrow_amount: Decimal) -> None:
        self.borrowed_amount_wads = self.borrowed_amount_wads.try_add(borrow_amount)

    def repay(self, settle_amount: Decimal) -> None:
        self.borrowed_amount_wads = self.borrowed_amount_wads.try_sub(settle_amount)


@dataclass
class Obligation:
    """A borrower's deposits and borrows in one lending market

    Market values and the aggregate values are only ever written by
    refresh_obligation.
    """
    version: int = UNINITIALIZED_VERSION
    last_update: LastUpdate = field(default_factory=LastUpdate)
    lending_market: bytes = NULL_PUBKEY
    owner: bytes = NULL_PUBKEY
    deposits: List[ObligationCollateral] = field(default_factory=list)
    borrows: List[ObligationLiquidity] = field(default_factory=list)
    deposited_value: Decimal = field(default_factory=Decimal.zero)
    borrowed_value: Decimal = field(default_factory=Decimal.zero)
    allowed_borrow_value: Decimal = field(default_factory=Decimal.zero)  # at the weighted LTV
    unhealthy_borrow_value: Decimal = field(default_factory=Decimal.zero)  # at the weighted liquidation threshold
    unclaimed_mine: Decimal = field(default_factory=Decimal.zero)

    @classmethod
    def new(cls, current_slot: int, lending_market: bytes, owner: bytes) -> "Obligation":
        return cls(
            version=PROGRAM_VERSION,
            last_update=LastUpdate(slot=current_slot, stale=True),
            lending_market=lending_market,
            owner=owner,
        )

    def is_initialized(self) -> bool:
        return self.version != UNINITIALIZED_VERSION

    def entry_count(self) -> int:
        return len(self.deposits) + len(self.borrows)

    def is_unhealthy(self) -> bool:
        return self.borrowed_value > self.unhealthy_borrow_value

    def remaining_borrow_value(self) -> Decimal:
        return self.allowed_borrow_value.saturating_sub(self.borrowed_value)

    def max_withdraw_value(self, loan_to_value: Decimal) -> Decimal:
        """Largest deposit value, at the given LTV, that keeps borrows within the allowed value"""
        remaining = self.remaining_borrow_value()
        if loan_to_value == Decimal.zero():
            return self.deposited_value
        return remaining.try_div(loan_to_value)

    def find_collateral_in_deposits(self, deposit_reserve: bytes) -> Tuple[ObligationCollateral, int]:
        for index, collateral in enumerate(self.deposits):
            if collateral.deposit_reserve == deposit_reserve:
                return collateral, index
        raise InvalidAccountInputError("Invalid obligation collateral: reserve not found in deposits")

    def find_liquidity_in_borrows(self, borrow_reserve: bytes) -> Tuple[ObligationLiquidity, int]:
        for index, liquidity in enumerate(self.borrows):
            if liquidity.borrow_reserve == borrow_reserve:
                return liquidity, index
        raise InvalidAccountInputError("Invalid obligation liquidity: reserve not found in borrows")

    def insert_collateral(self, collateral: ObligationCollateral) -> ObligationCollateral:
        if any(c.deposit_reserve == collateral.deposit_reserve for c in self.deposits):
            raise DuplicateReserveEntryError("Reserve is already in obligation deposits")
        self._check_capacity()
        self.deposits.append(collateral)
        return collateral

    def insert_liquidity(self, liquidity: ObligationLiquidity) -> ObligationLiquidity:
        if any(l.borrow_reserve == liquidity.borrow_reserve for l in self.borrows):
            raise DuplicateReserveEntryError("Reserve is already in obligation borrows")
        self._check_capacity()
        self.borrows.append(liquidity)
        return liquidity

    def _check_capacity(self) -> None:
        if self.entry_count() >= MAX_OBLIGATION_RESERVES:
            raise CapacityExceededError(
                f"Obligation cannot have more than {MAX_OBLIGATION_RESERVES} deposits and borrows combined"
            )

    def find_or_add_collateral_to_deposits(self, deposit_reserve: bytes, mining_index: Decimal) -> ObligationCollateral:
        for collateral in self.deposits:
            if collateral.deposit_reserve == deposit_reserve:
                return collateral
        return self.insert_collateral(ObligationCollateral(deposit_reserve=deposit_reserve, index=mining_index))

    def find_or_add_liquidity_to_borrows(
        self, borrow_reserve: bytes, cumulative_borrow_rate_wads: Decimal, mining_index: Decimal
    ) -> ObligationLiquidity:
        for liquidity in self.borrows:
            if liquidity.borrow_reserve == borrow_reserve:
                return liquidity
        return self.insert_liquidity(ObligationLiquidity(
            borrow_reserve=borrow_reserve,
            cumulative_borrow_rate_wads=cumulative_borrow_rate_wads,
            index=mining_index,
        ))

    def withdraw(self, withdraw_amount: int, collateral_index: int) -> None:
        collateral = self.deposits[collateral_index]
        if withdraw_amount == collateral.deposited_amount:
            del self.deposits[collateral_index]
        else:
            collateral.withdraw(withdraw_amount)

    def repay(self, settle_amount: Decimal, liquidity_index: int) -> None:
        liquidity = self.borrows[liquidity_index]
        if settle_amount >= liquidity.borrowed_amount_wads:
            del self.borrows[liquidity_index]
        else:
            liquidity.repay(settle_amount)

    def accrue_collateral_mine(self, collateral: ObligationCollateral, l_token_mining_index: Decimal) -> None:
        earned = Decimal.from_integer(collateral.deposited_amount).try_mul(l_token_mining_index.try_sub(collateral.index))
        self.unclaimed_mine = self.unclaimed_mine.try_add(earned)
        collateral.index = l_token_mining_index

    def accrue_liquidity_mine(self, liquidity: ObligationLiquidity, borrow_mining_index: Decimal) -> None:
        earned = liquidity.borrowed_amount_wads.try_mul(borrow_mining_index.try_sub(liquidity.index))
        self.unclaimed_mine = self.unclaimed_mine.try_add(earned)
        liquidity.index = borrow_mining_index
