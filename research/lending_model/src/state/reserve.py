"""Reserve state management

A reserve is one asset's liquidity pool together with the collateral token
that represents a share of it. Interest, fees, exchange rates and the
sizing of borrows, repays and liquidations are all computed here.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Tuple

from ..constants import (
    HOST_FEE_RECEIVER_COUNT,
    INITIAL_COLLATERAL_RATIO,
    LIQUIDATION_CLOSE_AMOUNT,
    LIQUIDATION_CLOSE_FACTOR,
    MAX_AMOUNT,
    NULL_PUBKEY,
    PROGRAM_VERSION,
    SLOTS_PER_YEAR,
    U64_MAX,
    UNINITIALIZED_VERSION,
    WAD,
)
from ..errors import (
    InsufficientCollateralError,
    InsufficientLiquidityError,
    InvalidAmountError,
    InvalidConfigError,
)
from ..math.checked import checked_add, checked_sub
from ..math.decimal import Decimal
from ..math.rate import Rate
from .last_update import LastUpdate

if TYPE_CHECKING:
    from .obligation import ObligationCollateral, ObligationLiquidity

log = logging.getLogger(__name__)


class FeeCalculation(Enum):
    """How a fee relates to the amount it is charged on"""
    EXCLUSIVE = "exclusive"  # fee = rate * amount, added on top
    INCLUSIVE = "inclusive"  # fee = rate / (1 + rate) * amount, taken out of it


@dataclass
class CalculateBorrowResult:
    borrow_amount: Decimal  # total debt created, fees included
    receive_amount: int
    borrow_fee: int
    host_fee: int

    @property
    def owner_fee(self) -> int:
        return self.borrow_fee - self.host_fee


@dataclass
class CalculateRepayResult:
    settle_amount: Decimal  # debt removed from the obligation
    repay_amount: int  # tokens the payer sends, rounded up


@dataclass
class CalculateLiquidationResult:
    settle_amount: Decimal
    repay_amount: int
    withdraw_amount: int  # collateral tokens released to the liquidator


@dataclass
class ReserveFees:
    """Owner and host fees, separate from interest accrual

    Fee wads are fractions scaled by 1e18: 1% = 10_000_000_000_000_000.
    """
    borrow_fee_wad: int = 0
    reserve_owner_fee_wad: int = 0  # share of accrued interest kept by the owner
    flash_loan_fee_wad: int = 0
    host_fee_percentage: int = 0
    host_fee_receivers: List[bytes] = field(default_factory=list)

    def calculate_borrow_fees(self, amount: Decimal, fee_calculation: FeeCalculation) -> Tuple[int, int]:
        return self._calculate_fees(amount, self.borrow_fee_wad, fee_calculation)

    def calculate_flash_loan_fees(self, amount: Decimal) -> Tuple[int, int]:
        return self._calculate_fees(amount, self.flash_loan_fee_wad, FeeCalculation.EXCLUSIVE)

    def _calculate_fees(self, amount: Decimal, fee_wad: int, fee_calculation: FeeCalculation) -> Tuple[int, int]:
        """Return (total fee, host portion of it) in whole tokens"""
        fee_rate = Decimal.from_scaled_val(fee_wad)
        host_fee_rate = Decimal.from_percent(self.host_fee_percentage)
        if fee_rate == Decimal.zero() or amount == Decimal.zero():
            return 0, 0

        need_host_fee = host_fee_rate > Decimal.zero()
        minimum_fee = 2 if need_host_fee else 1

        if fee_calculation is FeeCalculation.EXCLUSIVE:
            fee_amount = amount.try_mul(fee_rate)
        else:
            fee_amount = amount.try_mul(fee_rate.try_div(fee_rate.try_add(Decimal.one())))

        fee_decimal = max(fee_amount, Decimal.from_integer(minimum_fee))
        if fee_decimal >= amount:
            raise InvalidAmountError("Amount is too small to cover its fees")

        fee = fee_decimal.try_round_u64()
        host_fee = max(fee_decimal.try_mul(host_fee_rate).try_round_u64(), 1) if need_host_fee else 0
        return fee, host_fee


@dataclass
class ReserveConfig:
    """Reserve configuration values, percentages unless noted"""
    optimal_utilization_rate: int = 0
    loan_to_value_ratio: int = 0  # 0 disables use as collateral
    liquidation_bonus: int = 0
    liquidation_threshold: int = 0
    min_borrow_rate: int = 0
    optimal_borrow_rate: int = 0
    max_borrow_rate: int = 0
    fees: ReserveFees = field(default_factory=ReserveFees)
    deposit_paused: bool = False
    borrow_paused: bool = False
    liquidation_paused: bool = False
    deposit_limit: int = 0  # total liquidity cap in tokens, 0 for none

    def validate(self) -> None:
        if self.optimal_utilization_rate > 100:
            raise InvalidConfigError("Optimal utilization rate must be in range [0, 100]")
        if self.loan_to_value_ratio >= 100:
            raise InvalidConfigError("Loan to value ratio must be in range [0, 100)")
        if self.liquidation_bonus > 100:
            raise InvalidConfigError("Liquidation bonus must be in range [0, 100]")
        if not self.loan_to_value_ratio < self.liquidation_threshold <= 100:
            raise InvalidConfigError("Liquidation threshold must be in range (LTV, 100]")
        if self.optimal_borrow_rate < self.min_borrow_rate:
            raise InvalidConfigError("Optimal borrow rate must be >= min borrow rate")
        if self.optimal_borrow_rate > self.max_borrow_rate:
            raise InvalidConfigError("Optimal borrow rate must be <= max borrow rate")
        for name in ("borrow_fee_wad", "reserve_owner_fee_wad", "flash_loan_fee_wad"):
            if getattr(self.fees, name) > WAD:
                raise InvalidConfigError(f"{name} must be in range [0, 1_000_000_000_000_000_000]")
        if self.fees.host_fee_percentage > 100:
            raise InvalidConfigError("Host fee percentage must be in range [0, 100]")
        if len(self.fees.host_fee_receivers) > HOST_FEE_RECEIVER_COUNT:
            raise InvalidConfigError(f"At most {HOST_FEE_RECEIVER_COUNT} host fee receivers")
        if self.deposit_limit > U64_MAX:
            raise InvalidConfigError("Deposit limit must fit in a u64")


@dataclass
class CollateralExchangeRate:
    """Collateral tokens per unit of liquidity"""
    rate: Rate

    def collateral_to_liquidity(self, collateral_amount: int) -> int:
        return self.decimal_collateral_to_liquidity(Decimal.from_integer(collateral_amount)).try_floor_u64()

    def decimal_collateral_to_liquidity(self, collateral_amount: Decimal) -> Decimal:
        return collateral_amount.try_div(self.rate.to_decimal())

    def liquidity_to_collateral(self, liquidity_amount: int) -> int:
        return self.decimal_liquidity_to_collateral(Decimal.from_integer(liquidity_amount)).try_floor_u64()

    def decimal_liquidity_to_collateral(self, liquidity_amount: Decimal) -> Decimal:
        return liquidity_amount.try_mul(self.rate.to_decimal())


@dataclass
class ReserveLiquidity:
    """Reserve liquidity"""
    is_lp: bool = False
    mint_pubkey: bytes = NULL_PUBKEY
    mint_decimals: int = 0
    supply_pubkey: bytes = NULL_PUBKEY
    fee_receiver: bytes = NULL_PUBKEY
    use_pyth_oracle: bool = False
    params_1: bytes = NULL_PUBKEY  # pyth price account, or bridge pool when is_lp
    params_2: bytes = NULL_PUBKEY  # larix oracle account, or lp price account when is_lp
    available_amount: int = 0
    borrowed_amount_wads: Decimal = field(default_factory=Decimal.zero)
    cumulative_borrow_rate_wads: Decimal = field(default_factory=Decimal.one)
    market_price: Decimal = field(default_factory=Decimal.zero)
    owner_unclaimed: Decimal = field(default_factory=Decimal.zero)

    def total_supply(self) -> Decimal:
        """Liquidity owed to depositors, excluding the owner's unclaimed fees"""
        return (
            Decimal.from_integer(self.available_amount)
            .try_add(self.borrowed_amount_wads)
            .try_sub(self.owner_unclaimed)
        )

    def deposit(self, liquidity_amount: int) -> None:
        self.available_amount = checked_add(self.available_amount, liquidity_amount, limit=U64_MAX)

    def withdraw(self, liquidity_amount: int) -> None:
        if liquidity_amount > self.available_amount:
            raise InsufficientLiquidityError("Withdraw amount cannot exceed available liquidity")
        self.available_amount -= liquidity_amount

    def borrow(self, borrow_decimal: Decimal) -> None:
        borrow_amount = borrow_decimal.try_floor_u64()
        if borrow_amount > self.available_amount:
            raise InsufficientLiquidityError("Borrow amount cannot exceed available liquidity")
        self.available_amount -= borrow_amount
        self.borrowed_amount_wads = self.borrowed_amount_wads.try_add(borrow_decimal)

    def repay(self, repay_amount: int, settle_amount: Decimal) -> None:
        self.available_amount = checked_add(self.available_amount, repay_amount, limit=U64_MAX)
        # obligation and reserve compound separately and may differ in the last digit
        self.borrowed_amount_wads = self.borrowed_amount_wads.saturating_sub(settle_amount)

    def utilization_rate(self) -> Rate:
        total = Decimal.from_integer(self.available_amount).try_add(self.borrowed_amount_wads)
        if total == Decimal.zero():
            return Rate.zero()
        return Rate.from_decimal(self.borrowed_amount_wads.try_div(total))

    def compound_interest(self, current_borrow_rate: Rate, slots_elapsed: int, reserve_owner_fee_wad: int) -> None:
        """Grow the cumulative rate and borrows, routing the owner's share of the interest"""
        slot_interest_rate = current_borrow_rate.to_decimal().try_div(SLOTS_PER_YEAR)
        compounded_interest_rate = Decimal.one().try_add(slot_interest_rate).try_pow(slots_elapsed)
        self.cumulative_borrow_rate_wads = self.cumulative_borrow_rate_wads.try_mul(compounded_interest_rate)

        new_borrowed_amount_wads = self.borrowed_amount_wads.try_mul(compounded_interest_rate)
        interest = new_borrowed_amount_wads.try_sub(self.borrowed_amount_wads)
        owner_fee = interest.try_mul(Decimal.from_scaled_val(reserve_owner_fee_wad))
        self.owner_unclaimed = self.owner_unclaimed.try_add(owner_fee)
        self.borrowed_amount_wads = new_borrowed_amount_wads


@dataclass
class ReserveCollateral:
    """Reserve collateral"""
    mint_pubkey: bytes = NULL_PUBKEY
    mint_total_supply: int = 0
    supply_pubkey: bytes = NULL_PUBKEY

    def mint(self, collateral_amount: int) -> None:
        self.mint_total_supply = checked_add(self.mint_total_supply, collateral_amount, limit=U64_MAX)

    def burn(self, collateral_amount: int) -> None:
        self.mint_total_supply = checked_sub(self.mint_total_supply, collateral_amount)

    def exchange_rate(self, total_liquidity: Decimal) -> CollateralExchangeRate:
        if self.mint_total_supply == 0 or total_liquidity == Decimal.zero():
            rate = Rate.from_scaled_val(Rate.one().value * INITIAL_COLLATERAL_RATIO)
        else:
            rate = Rate.from_decimal(Decimal.from_integer(self.mint_total_supply).try_div(total_liquidity))
        return CollateralExchangeRate(rate)


@dataclass
class Bonus:
    """Mining state of a reserve"""
    un_coll_supply_account: bytes = NULL_PUBKEY
    l_token_mining_index: Decimal = field(default_factory=Decimal.zero)
    borrow_mining_index: Decimal = field(default_factory=Decimal.zero)
    total_mining_speed: int = 0  # mine tokens per slot
    supply_rate: int = 0  # kink utilization as a wad, caps the borrowers' share


@dataclass
class Reserve:
    """Lending market reserve state"""
    version: int = UNINITIALIZED_VERSION
    last_update: LastUpdate = field(default_factory=LastUpdate)
    lending_market: bytes = NULL_PUBKEY
    liquidity: ReserveLiquidity = field(default_factory=ReserveLiquidity)
    collateral: ReserveCollateral = field(default_factory=ReserveCollateral)
    config: ReserveConfig = field(default_factory=ReserveConfig)
    bonus: Bonus = field(default_factory=Bonus)
    reentry_lock: bool = False

    @classmethod
    def new(
        cls,
        current_slot: int,
        lending_market: bytes,
        liquidity: ReserveLiquidity,
        collateral: ReserveCollateral,
        config: ReserveConfig,
        bonus: Bonus,
    ) -> "Reserve":
        liquidity.cumulative_borrow_rate_wads = Decimal.one()
        return cls(
            version=PROGRAM_VERSION,
            last_update=LastUpdate(slot=current_slot, stale=True),
            lending_market=lending_market,
            liquidity=liquidity,
            collateral=collateral,
            config=config,
            bonus=bonus,
        )

    def is_initialized(self) -> bool:
        return self.version != UNINITIALIZED_VERSION

    def collateral_exchange_rate(self) -> CollateralExchangeRate:
        return self.collateral.exchange_rate(self.liquidity.total_supply())

    def deposit_liquidity(self, liquidity_amount: int) -> int:
        """Add liquidity and return the collateral minted for it"""
        collateral_amount = self.collateral_exchange_rate().liquidity_to_collateral(liquidity_amount)
        self.liquidity.deposit(liquidity_amount)
        self.collateral.mint(collateral_amount)
        return collateral_amount

    def redeem_collateral(self, collateral_amount: int) -> int:
        """Burn collateral and return the liquidity released for it"""
        liquidity_amount = self.collateral_exchange_rate().collateral_to_liquidity(collateral_amount)
        self.collateral.burn(collateral_amount)
        self.liquidity.withdraw(liquidity_amount)
        return liquidity_amount

    def current_borrow_rate(self) -> Rate:
        """Annual borrow rate from the three point utilization curve"""
        utilization_rate = self.liquidity.utilization_rate()
        optimal_utilization_rate = Rate.from_percent(self.config.optimal_utilization_rate)
        if utilization_rate >= Rate.one():
            return Rate.from_percent(self.config.max_borrow_rate)

        if utilization_rate < optimal_utilization_rate:
            normalized_rate = utilization_rate.try_div(optimal_utilization_rate)
            min_rate = Rate.from_percent(self.config.min_borrow_rate)
            rate_range = Rate.from_percent(self.config.optimal_borrow_rate - self.config.min_borrow_rate)
            return normalized_rate.try_mul(rate_range).try_add(min_rate)

        normalized_rate = utilization_rate.try_sub(optimal_utilization_rate).try_div(
            Rate.one().try_sub(optimal_utilization_rate)
        )
        optimal_rate = Rate.from_percent(self.config.optimal_borrow_rate)
        rate_range = Rate.from_percent(self.config.max_borrow_rate - self.config.optimal_borrow_rate)
        return normalized_rate.try_mul(rate_range).try_add(optimal_rate)

    def accrue_interest(self, current_slot: int) -> None:
        slots_elapsed = self.last_update.slots_elapsed(current_slot)
        if slots_elapsed == 0:
            return
        self.update_mining_indices(slots_elapsed)
        current_borrow_rate = self.current_borrow_rate()
        self.liquidity.compound_interest(
            current_borrow_rate, slots_elapsed, self.config.fees.reserve_owner_fee_wad
        )
        if log.isEnabledFor(logging.DEBUG):
            log.debug(
                "Accrued %d slots at borrow rate %s, cumulative rate %s",
                slots_elapsed, current_borrow_rate, self.liquidity.cumulative_borrow_rate_wads,
            )

    def update_mining_indices(self, slots_elapsed: int) -> None:
        """Split the mine emitted since the last update between suppliers and borrowers"""
        if self.bonus.total_mining_speed == 0:
            return
        total_mine = Decimal.from_integer(self.bonus.total_mining_speed).try_mul(slots_elapsed)
        kink = Rate.from_decimal(Decimal.from_scaled_val(self.bonus.supply_rate))
        borrow_share = min(self.liquidity.utilization_rate(), kink)
        supply_share = Rate.one().try_sub(borrow_share)

        if self.collateral.mint_total_supply > 0:
            supply_mine = total_mine.try_mul(supply_share.to_decimal())
            self.bonus.l_token_mining_index = self.bonus.l_token_mining_index.try_add(
                supply_mine.try_div(self.collateral.mint_total_supply)
            )
        if self.liquidity.borrowed_amount_wads > Decimal.zero():
            borrow_mine = total_mine.try_mul(borrow_share.to_decimal())
            self.bonus.borrow_mining_index = self.bonus.borrow_mining_index.try_add(
                borrow_mine.try_div(self.liquidity.borrowed_amount_wads)
            )

    def market_value(self, liquidity_amount: Decimal) -> Decimal:
        """Quote currency value of an amount of liquidity"""
        return liquidity_amount.try_mul(self.liquidity.market_price).try_div(10 ** self.liquidity.mint_decimals)

    def calculate_borrow(self, amount_to_borrow: int, max_borrow_value: Decimal) -> CalculateBorrowResult:
        decimals = 10 ** self.liquidity.mint_decimals
        if amount_to_borrow == MAX_AMOUNT:
            # fees come out of the borrowed amount so the total stays within max_borrow_value
            borrow_amount = max_borrow_value.try_mul(decimals).try_div(self.liquidity.market_price)
            borrow_amount = min(borrow_amount, Decimal.from_integer(self.liquidity.available_amount))
            borrow_fee, host_fee = self.config.fees.calculate_borrow_fees(borrow_amount, FeeCalculation.INCLUSIVE)
            receive_amount = checked_sub(borrow_amount.try_floor_u64(), borrow_fee)
            return CalculateBorrowResult(borrow_amount, receive_amount, borrow_fee, host_fee)

        receive_amount = amount_to_borrow
        borrow_amount = Decimal.from_integer(receive_amount)
        borrow_fee, host_fee = self.config.fees.calculate_borrow_fees(borrow_amount, FeeCalculation.EXCLUSIVE)
        borrow_amount = borrow_amount.try_add(Decimal.from_integer(borrow_fee))
        if self.market_value(borrow_amount) > max_borrow_value:
            raise InsufficientCollateralError("Borrow amount cannot exceed maximum borrow value")
        return CalculateBorrowResult(borrow_amount, receive_amount, borrow_fee, host_fee)

    def calculate_repay(self, amount_to_repay: int, borrowed_amount: Decimal) -> CalculateRepayResult:
        if amount_to_repay == MAX_AMOUNT:
            settle_amount = borrowed_amount
        else:
            settle_amount = min(Decimal.from_integer(amount_to_repay), borrowed_amount)
        remaining = borrowed_amount.try_sub(settle_amount)
        if Decimal.zero() < remaining < Decimal.from_integer(LIQUIDATION_CLOSE_AMOUNT):
            settle_amount = borrowed_amount
        return CalculateRepayResult(settle_amount, settle_amount.try_ceil_u64())

    def calculate_liquidation(
        self,
        amount_to_liquidate: int,
        liquidity: "ObligationLiquidity",
        collateral: "ObligationCollateral",
    ) -> CalculateLiquidationResult:
        """Size a liquidation of one borrow against one deposit

        When the bonus-scaled value exceeds what the deposit is worth, the whole
        deposit is withdrawn and the settled debt shrinks in proportion; the
        remainder stays on the obligation as bad debt.
        """
        bonus_rate = Decimal.from_percent(self.config.liquidation_bonus).try_add(Decimal.one())
        borrowed_amount = liquidity.borrowed_amount_wads
        if borrowed_amount == Decimal.zero():
            raise InvalidAmountError("Obligation borrow is empty")

        if amount_to_liquidate == MAX_AMOUNT:
            max_amount = borrowed_amount
        else:
            max_amount = min(Decimal.from_integer(amount_to_liquidate), borrowed_amount)

        if borrowed_amount < Decimal.from_integer(LIQUIDATION_CLOSE_AMOUNT):
            # too small to liquidate by halves, close it out
            liquidation_amount = borrowed_amount
        else:
            max_liquidation_amount = borrowed_amount.try_mul(Decimal.from_percent(LIQUIDATION_CLOSE_FACTOR))
            liquidation_amount = min(max_liquidation_amount, max_amount)

        liquidation_pct = liquidation_amount.try_div(borrowed_amount)
        liquidation_value = liquidity.market_value.try_mul(liquidation_pct).try_mul(bonus_rate)

        if liquidation_value > collateral.market_value:
            repay_pct = collateral.market_value.try_div(liquidation_value)
            settle_amount = liquidation_amount.try_mul(repay_pct)
            repay_amount = settle_amount.try_ceil_u64()
            withdraw_amount = collateral.deposited_amount
        elif liquidation_value == collateral.market_value:
            settle_amount = liquidation_amount
            repay_amount = settle_amount.try_ceil_u64()
            withdraw_amount = collateral.deposited_amount
        else:
            withdraw_pct = liquidation_value.try_div(collateral.market_value)
            settle_amount = liquidation_amount
            repay_amount = settle_amount.try_ceil_u64()
            withdraw_amount = Decimal.from_integer(collateral.deposited_amount).try_mul(withdraw_pct).try_floor_u64()

        log.debug(
            "Liquidation sized: settle %s, repay %d, withdraw %d", settle_amount, repay_amount, withdraw_amount
        )
        return CalculateLiquidationResult(settle_amount, repay_amount, withdraw_amount)
