"""Obligation operations: refresh, collateral deposits and withdrawals, borrows and repays"""
import copy
import logging
from typing import Mapping

from ..constants import MAX_AMOUNT
from ..errors import (
    InsufficientCollateralError,
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidOwnerError,
    OperationPausedError,
    WithdrawTooLargeError,
)
from ..interfaces import SignerVerifier, TokenTransfer
from ..math.decimal import Decimal
from ..state.lending_market import LendingMarket
from ..state.obligation import Obligation
from ..state.reserve import CalculateBorrowResult, CalculateRepayResult, Reserve
from .guards import (
    logs_rejection,
    reentry_guard,
    require_amount,
    require_fresh_obligation,
    require_fresh_reserve,
    require_same_market,
    require_signer,
)

log = logging.getLogger(__name__)


@logs_rejection
def init_obligation(
    obligation: Obligation,
    current_slot: int,
    lending_market: LendingMarket,
    lending_market_pubkey: bytes,
    owner: bytes,
    signer: SignerVerifier,
) -> Obligation:
    if obligation.is_initialized():
        raise InvalidAccountInputError("Obligation already initialized")
    if not lending_market.is_initialized():
        raise InvalidAccountInputError("Lending market is not initialized")
    if not signer.verify_signer(owner):
        raise InvalidOwnerError("Obligation owner must be a signer")
    return Obligation.new(current_slot, lending_market_pubkey, owner)


def _refreshed_reserve(reserves: Mapping[bytes, Reserve], pubkey: bytes, obligation: Obligation, current_slot: int) -> Reserve:
    reserve = reserves.get(pubkey)
    if reserve is None:
        raise InvalidAccountInputError(f"Reserve {pubkey.hex()} referenced by the obligation was not provided")
    require_same_market(reserve, obligation.lending_market)
    require_fresh_reserve(reserve, current_slot)
    return reserve


@logs_rejection
def refresh_obligation(obligation: Obligation, reserves: Mapping[bytes, Reserve], current_slot: int) -> Obligation:
    """Recompute market values and aggregate values from freshly refreshed reserves

    reserves maps reserve pubkeys to reserve records refreshed in
    current_slot. Borrows accrue interest up to each reserve's cumulative
    rate and every entry collects the mine emitted since its last refresh.
    Returns a refreshed copy.
    """
    refreshed = copy.deepcopy(obligation)
    deposited_value = Decimal.zero()
    borrowed_value = Decimal.zero()
    allowed_borrow_value = Decimal.zero()
    unhealthy_borrow_value = Decimal.zero()

    for collateral in refreshed.deposits:
        reserve = _refreshed_reserve(reserves, collateral.deposit_reserve, refreshed, current_slot)
        refreshed.accrue_collateral_mine(collateral, reserve.bonus.l_token_mining_index)

        liquidity_amount = reserve.collateral_exchange_rate().decimal_collateral_to_liquidity(
            Decimal.from_integer(collateral.deposited_amount)
        )
        market_value = reserve.market_value(liquidity_amount)
        collateral.market_value = market_value

        deposited_value = deposited_value.try_add(market_value)
        allowed_borrow_value = allowed_borrow_value.try_add(
            market_value.try_mul(Decimal.from_percent(reserve.config.loan_to_value_ratio))
        )
        unhealthy_borrow_value = unhealthy_borrow_value.try_add(
            market_value.try_mul(Decimal.from_percent(reserve.config.liquidation_threshold))
        )

    for liquidity in refreshed.borrows:
        reserve = _refreshed_reserve(reserves, liquidity.borrow_reserve, refreshed, current_slot)
        # mine is earned on the debt as it stood over the elapsed slots
        refreshed.accrue_liquidity_mine(liquidity, reserve.bonus.borrow_mining_index)
        liquidity.accrue_interest(reserve.liquidity.cumulative_borrow_rate_wads)

        market_value = reserve.market_value(liquidity.borrowed_amount_wads)
        liquidity.market_value = market_value
        borrowed_value = borrowed_value.try_add(market_value)

    refreshed.deposited_value = deposited_value
    refreshed.borrowed_value = borrowed_value
    refreshed.allowed_borrow_value = allowed_borrow_value
    refreshed.unhealthy_borrow_value = unhealthy_borrow_value
    refreshed.last_update.update_slot(current_slot)

    if log.isEnabledFor(logging.DEBUG):
        log.debug(
            "Obligation refreshed: deposited %s, borrowed %s, allowed %s, unhealthy %s",
            deposited_value, borrowed_value, allowed_borrow_value, unhealthy_borrow_value,
        )
    return refreshed


@logs_rejection
def deposit_obligation_collateral(
    obligation: Obligation,
    deposit_reserve: Reserve,
    deposit_reserve_pubkey: bytes,
    collateral_amount: int,
    current_slot: int,
) -> None:
    require_amount(collateral_amount, "Collateral amount")
    require_same_market(deposit_reserve, obligation.lending_market)
    require_fresh_reserve(deposit_reserve, current_slot)

    l_token_mining_index = deposit_reserve.bonus.l_token_mining_index
    collateral = obligation.find_or_add_collateral_to_deposits(deposit_reserve_pubkey, l_token_mining_index)
    obligation.accrue_collateral_mine(collateral, l_token_mining_index)
    collateral.deposit(collateral_amount)
    obligation.last_update.mark_stale()


@logs_rejection
def withdraw_obligation_collateral(
    obligation: Obligation,
    withdraw_reserve: Reserve,
    withdraw_reserve_pubkey: bytes,
    collateral_amount: int,
    current_slot: int,
) -> int:
    """Withdraw collateral while keeping borrows within the allowed value

    MAX_AMOUNT withdraws as much as the obligation's health allows, which is
    the whole deposit when nothing is borrowed. Returns the collateral
    amount released.
    """
    require_amount(collateral_amount, "Collateral amount")
    require_same_market(withdraw_reserve, obligation.lending_market)
    require_fresh_reserve(withdraw_reserve, current_slot)
    require_fresh_obligation(obligation, current_slot)

    collateral, collateral_index = obligation.find_collateral_in_deposits(withdraw_reserve_pubkey)
    if collateral.deposited_amount == 0:
        raise InvalidAmountError("Obligation collateral deposited amount is zero")
    if collateral_amount != MAX_AMOUNT and collateral_amount > collateral.deposited_amount:
        raise WithdrawTooLargeError("Withdraw amount cannot exceed deposited amount")

    if not obligation.borrows or collateral.market_value == Decimal.zero():
        if collateral_amount == MAX_AMOUNT:
            withdraw_amount = collateral.deposited_amount
        else:
            withdraw_amount = collateral_amount
    else:
        max_withdraw_value = obligation.max_withdraw_value(
            Decimal.from_percent(withdraw_reserve.config.loan_to_value_ratio)
        )
        if max_withdraw_value == Decimal.zero():
            raise WithdrawTooLargeError("Obligation has no borrow headroom to withdraw against")

        if collateral_amount == MAX_AMOUNT:
            withdraw_value = min(max_withdraw_value, collateral.market_value)
            withdraw_pct = withdraw_value.try_div(collateral.market_value)
            withdraw_amount = min(
                Decimal.from_integer(collateral.deposited_amount).try_mul(withdraw_pct).try_floor_u64(),
                collateral.deposited_amount,
            )
        else:
            withdraw_pct = Decimal.from_integer(collateral_amount).try_div(collateral.deposited_amount)
            withdraw_value = collateral.market_value.try_mul(withdraw_pct)
            if withdraw_value > max_withdraw_value:
                raise WithdrawTooLargeError("Withdraw would leave borrows above the allowed borrow value")
            withdraw_amount = collateral_amount

    if withdraw_amount == 0:
        raise InvalidAmountError("Withdraw amount is too small to transfer collateral")

    obligation.accrue_collateral_mine(collateral, withdraw_reserve.bonus.l_token_mining_index)
    obligation.withdraw(withdraw_amount, collateral_index)
    obligation.last_update.mark_stale()
    log.debug("Withdrew %d collateral", withdraw_amount)
    return withdraw_amount


@logs_rejection
def borrow_obligation_liquidity(
    obligation: Obligation,
    borrow_reserve: Reserve,
    borrow_reserve_pubkey: bytes,
    liquidity_amount: int,
    current_slot: int,
) -> CalculateBorrowResult:
    """Borrow liquidity against the obligation's deposits

    MAX_AMOUNT borrows up to the remaining borrow value with fees taken out
    of it. The result's receive_amount goes to the borrower, borrow_fee to
    the fee receivers.
    """
    with reentry_guard(borrow_reserve):
        require_amount(liquidity_amount, "Liquidity amount")
        if borrow_reserve.config.borrow_paused:
            raise OperationPausedError("Borrows are paused on this reserve")
        require_same_market(borrow_reserve, obligation.lending_market)
        require_fresh_reserve(borrow_reserve, current_slot)
        require_fresh_obligation(obligation, current_slot)

        if not obligation.deposits:
            raise InsufficientCollateralError("Obligation has no deposits to borrow against")
        remaining_borrow_value = obligation.remaining_borrow_value()
        if remaining_borrow_value == Decimal.zero():
            raise InsufficientCollateralError("Remaining borrow value is zero")

        result = borrow_reserve.calculate_borrow(liquidity_amount, remaining_borrow_value)
        if result.receive_amount == 0:
            raise InvalidAmountError("Borrow amount is too small to receive liquidity after fees")

        borrow_reserve.liquidity.borrow(result.borrow_amount)
        borrow_reserve.last_update.mark_stale()

        borrow_mining_index = borrow_reserve.bonus.borrow_mining_index
        liquidity = obligation.find_or_add_liquidity_to_borrows(
            borrow_reserve_pubkey, borrow_reserve.liquidity.cumulative_borrow_rate_wads, borrow_mining_index
        )
        obligation.accrue_liquidity_mine(liquidity, borrow_mining_index)
        liquidity.borrow(result.borrow_amount)
        obligation.last_update.mark_stale()

    log.debug(
        "Borrowed %s: receive %d, fee %d, host fee %d",
        result.borrow_amount, result.receive_amount, result.borrow_fee, result.host_fee,
    )
    return result


@logs_rejection
def repay_obligation_liquidity(
    obligation: Obligation,
    repay_reserve: Reserve,
    repay_reserve_pubkey: bytes,
    liquidity_amount: int,
    current_slot: int,
) -> CalculateRepayResult:
    """Repay a borrow, MAX_AMOUNT repaying all of it

    The borrow entry is removed once its debt is settled in full.
    """
    with reentry_guard(repay_reserve):
        require_amount(liquidity_amount, "Liquidity amount")
        require_same_market(repay_reserve, obligation.lending_market)
        require_fresh_reserve(repay_reserve, current_slot)
        require_fresh_obligation(obligation, current_slot)

        liquidity, liquidity_index = obligation.find_liquidity_in_borrows(repay_reserve_pubkey)
        if liquidity.borrowed_amount_wads == Decimal.zero():
            raise InvalidAmountError("Obligation liquidity borrowed amount is zero")

        result = repay_reserve.calculate_repay(liquidity_amount, liquidity.borrowed_amount_wads)
        if result.repay_amount == 0:
            raise InvalidAmountError("Repay amount is too small to transfer liquidity")

        repay_reserve.liquidity.repay(result.repay_amount, result.settle_amount)
        repay_reserve.last_update.mark_stale()

        obligation.accrue_liquidity_mine(liquidity, repay_reserve.bonus.borrow_mining_index)
        obligation.repay(result.settle_amount, liquidity_index)
        obligation.last_update.mark_stale()

    log.debug("Repaid %d, settled %s", result.repay_amount, result.settle_amount)
    return result


@logs_rejection
def claim_obligation_mine(
    obligation: Obligation,
    lending_market: LendingMarket,
    owner: bytes,
    signer: SignerVerifier,
    token_transfer: TokenTransfer,
    destination: bytes,
    current_slot: int,
) -> int:
    """Pay out the whole-token part of the obligation's unclaimed mine"""
    require_signer(signer, owner, obligation.owner, "Obligation owner")
    require_fresh_obligation(obligation, current_slot)

    amount = obligation.unclaimed_mine.try_floor_u64()
    if amount == 0:
        return 0
    obligation.unclaimed_mine = obligation.unclaimed_mine.try_sub(Decimal.from_integer(amount))
    token_transfer.transfer_tokens(
        lending_market.mine_supply_account, destination, obligation.lending_market, amount
    )
    return amount
