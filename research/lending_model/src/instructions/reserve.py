"""Reserve lifecycle: initialization, refresh, deposits, redemptions and owner fees"""
import copy
import logging
from typing import List, Sequence

from ..constants import NULL_PUBKEY, WAD
from ..errors import (
    DepositLimitExceededError,
    InsufficientLiquidityError,
    InvalidAccountInputError,
    InvalidConfigError,
    OperationPausedError,
)
from ..interfaces import PriceOracle, SignerVerifier, SlotClock, TokenTransfer
from ..math.decimal import Decimal
from ..state.lending_market import LendingMarket
from ..state.reserve import Bonus, Reserve, ReserveCollateral, ReserveConfig, ReserveLiquidity
from .guards import (
    logs_rejection,
    reentry_guard,
    require_amount,
    require_fresh_reserve,
    require_same_market,
    require_signer,
)

log = logging.getLogger(__name__)


@logs_rejection
def init_reserve(
    reserve: Reserve,
    current_slot: int,
    lending_market: LendingMarket,
    lending_market_pubkey: bytes,
    liquidity: ReserveLiquidity,
    collateral: ReserveCollateral,
    config: ReserveConfig,
    total_mining_speed: int = 0,
    kink_util_rate: int = 0,
    un_coll_supply_account: bytes = NULL_PUBKEY,
) -> Reserve:
    """Initialize a zeroed reserve record

    The cumulative borrow rate starts at one and both mining indices at zero.
    kink_util_rate is the utilization, as a wad, above which borrowers stop
    gaining a larger share of the mining emission.
    """
    if reserve.is_initialized():
        raise InvalidAccountInputError("Reserve already initialized")
    if not lending_market.is_initialized():
        raise InvalidAccountInputError("Lending market is not initialized")
    config.validate()
    if kink_util_rate > WAD:
        raise InvalidConfigError("Kink utilization rate must be in range [0, 1_000_000_000_000_000_000]")

    bonus = Bonus(
        un_coll_supply_account=un_coll_supply_account,
        total_mining_speed=total_mining_speed,
        supply_rate=kink_util_rate,
    )
    return Reserve.new(current_slot, lending_market_pubkey, liquidity, collateral, config, bonus)


@logs_rejection
def set_reserve_config(
    lending_market: LendingMarket,
    lending_market_pubkey: bytes,
    reserve: Reserve,
    config: ReserveConfig,
    authority: bytes,
    signer: SignerVerifier,
) -> None:
    require_signer(signer, authority, lending_market.owner, "Lending market owner")
    require_same_market(reserve, lending_market_pubkey)
    config.validate()
    reserve.config = config


@logs_rejection
def refresh_reserve(reserve: Reserve, current_slot: int, oracle_price: Decimal) -> Reserve:
    """Accrue interest and mining up to current_slot and take the oracle price

    Returns a refreshed copy; the given reserve is never modified, so a
    failure anywhere leaves the caller's record as it was.
    """
    refreshed = copy.deepcopy(reserve)
    with reentry_guard(refreshed):
        if refreshed.last_update.slots_elapsed(current_slot) == 0:
            refreshed.last_update.update_slot(current_slot)
            return refreshed
        refreshed.accrue_interest(current_slot)
        refreshed.liquidity.market_price = oracle_price
        refreshed.last_update.update_slot(current_slot)
    return refreshed


def price_account(reserve: Reserve) -> bytes:
    """Oracle account the reserve is priced from"""
    liquidity = reserve.liquidity
    if liquidity.use_pyth_oracle and not liquidity.is_lp:
        return liquidity.params_1
    return liquidity.params_2


def refresh_reserve_from(reserve: Reserve, clock: SlotClock, oracle: PriceOracle) -> Reserve:
    return refresh_reserve(reserve, clock.current_slot(), oracle.current_price(price_account(reserve)))


def refresh_reserves(reserves: Sequence[Reserve], clock: SlotClock, oracle: PriceOracle) -> List[Reserve]:
    """Refresh several reserves at one slot, all or none"""
    current_slot = clock.current_slot()
    return [
        refresh_reserve(reserve, current_slot, oracle.current_price(price_account(reserve)))
        for reserve in reserves
    ]


@logs_rejection
def deposit_reserve_liquidity(reserve: Reserve, liquidity_amount: int, current_slot: int) -> int:
    """Deposit liquidity and return the collateral minted for it"""
    with reentry_guard(reserve):
        require_amount(liquidity_amount, "Liquidity amount")
        if reserve.config.deposit_paused:
            raise OperationPausedError("Deposits are paused on this reserve")
        require_fresh_reserve(reserve, current_slot)
        if reserve.config.deposit_limit:
            total_after = reserve.liquidity.total_supply().try_add(Decimal.from_integer(liquidity_amount))
            if total_after > Decimal.from_integer(reserve.config.deposit_limit):
                raise DepositLimitExceededError("Deposit would exceed the reserve deposit limit")

        collateral_amount = reserve.deposit_liquidity(liquidity_amount)
        reserve.last_update.mark_stale()
    log.debug("Deposited %d liquidity for %d collateral", liquidity_amount, collateral_amount)
    return collateral_amount


@logs_rejection
def redeem_reserve_collateral(reserve: Reserve, collateral_amount: int, current_slot: int) -> int:
    """Burn collateral and return the liquidity released for it"""
    with reentry_guard(reserve):
        require_amount(collateral_amount, "Collateral amount")
        require_fresh_reserve(reserve, current_slot)

        liquidity_amount = reserve.redeem_collateral(collateral_amount)
        reserve.last_update.mark_stale()
    log.debug("Redeemed %d collateral for %d liquidity", collateral_amount, liquidity_amount)
    return liquidity_amount


@logs_rejection
def claim_owner_fee(
    lending_market: LendingMarket,
    reserve: Reserve,
    authority: bytes,
    signer: SignerVerifier,
    token_transfer: TokenTransfer,
    destination: bytes,
    current_slot: int,
) -> int:
    """Pay out the whole-token part of the owner's unclaimed interest share"""
    with reentry_guard(reserve):
        require_signer(signer, authority, lending_market.owner, "Lending market owner")
        require_fresh_reserve(reserve, current_slot)

        amount = reserve.liquidity.owner_unclaimed.try_floor_u64()
        if amount == 0:
            return 0
        if amount > reserve.liquidity.available_amount:
            raise InsufficientLiquidityError("Owner fee exceeds available liquidity")
        reserve.liquidity.available_amount -= amount
        reserve.liquidity.owner_unclaimed = reserve.liquidity.owner_unclaimed.try_sub(Decimal.from_integer(amount))
        reserve.last_update.mark_stale()
        token_transfer.transfer_tokens(reserve.liquidity.supply_pubkey, destination, reserve.lending_market, amount)
    return amount
