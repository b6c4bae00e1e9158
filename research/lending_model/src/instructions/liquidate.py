"""Liquidation of unhealthy obligations"""
import logging

from ..errors import InvalidAmountError, ObligationHealthyError, OperationPausedError
from ..math.decimal import Decimal
from ..state.obligation import Obligation
from ..state.reserve import CalculateLiquidationResult, Reserve
from .guards import (
    logs_rejection,
    reentry_guard,
    require_amount,
    require_fresh_obligation,
    require_fresh_reserve,
    require_same_market,
)

log = logging.getLogger(__name__)


@logs_rejection
def liquidate_obligation(
    obligation: Obligation,
    repay_reserve: Reserve,
    repay_reserve_pubkey: bytes,
    withdraw_reserve: Reserve,
    withdraw_reserve_pubkey: bytes,
    liquidity_amount: int,
    current_slot: int,
) -> CalculateLiquidationResult:
    """Repay part of an unhealthy obligation's borrow in exchange for its collateral

    The liquidator picks the borrow (repay_reserve) and the deposit
    (withdraw_reserve). At most LIQUIDATION_CLOSE_FACTOR percent of the
    borrow is settled per call, and the collateral released carries the
    withdraw reserve's liquidation bonus. MAX_AMOUNT liquidates as much as
    allowed.
    """
    with reentry_guard(repay_reserve, withdraw_reserve):
        require_amount(liquidity_amount, "Liquidity amount")
        if repay_reserve.config.liquidation_paused or withdraw_reserve.config.liquidation_paused:
            raise OperationPausedError("Liquidations are paused on this reserve")
        require_same_market(repay_reserve, obligation.lending_market)
        require_same_market(withdraw_reserve, obligation.lending_market)
        require_fresh_reserve(repay_reserve, current_slot)
        require_fresh_reserve(withdraw_reserve, current_slot)
        require_fresh_obligation(obligation, current_slot)

        if not obligation.is_unhealthy():
            raise ObligationHealthyError("Obligation is healthy and cannot be liquidated")

        liquidity, liquidity_index = obligation.find_liquidity_in_borrows(repay_reserve_pubkey)
        if liquidity.market_value == Decimal.zero():
            raise InvalidAmountError("Obligation borrow value is zero")
        collateral, collateral_index = obligation.find_collateral_in_deposits(withdraw_reserve_pubkey)
        if collateral.market_value == Decimal.zero():
            raise InvalidAmountError("Obligation deposit value is zero")

        result = withdraw_reserve.calculate_liquidation(liquidity_amount, liquidity, collateral)
        if result.repay_amount == 0:
            raise InvalidAmountError("Liquidation is too small to transfer liquidity")
        if result.withdraw_amount == 0:
            raise InvalidAmountError("Liquidation is too small to receive collateral")

        repay_reserve.liquidity.repay(result.repay_amount, result.settle_amount)
        repay_reserve.last_update.mark_stale()

        obligation.accrue_liquidity_mine(liquidity, repay_reserve.bonus.borrow_mining_index)
        obligation.accrue_collateral_mine(collateral, withdraw_reserve.bonus.l_token_mining_index)
        obligation.repay(result.settle_amount, liquidity_index)
        obligation.withdraw(result.withdraw_amount, collateral_index)
        obligation.last_update.mark_stale()

    log.debug(
        "Liquidated obligation: repay %d, settle %s, withdraw %d",
        result.repay_amount, result.settle_amount, result.withdraw_amount,
    )
    return result


def liquidate_obligation2(
    obligation: Obligation,
    repay_reserve: Reserve,
    repay_reserve_pubkey: bytes,
    withdraw_reserve: Reserve,
    withdraw_reserve_pubkey: bytes,
    liquidity_amount: int,
    current_slot: int,
) -> CalculateLiquidationResult:
    """Same liquidation under the second operation tag, which differs only in the accounts it is routed with"""
    return liquidate_obligation(
        obligation,
        repay_reserve,
        repay_reserve_pubkey,
        withdraw_reserve,
        withdraw_reserve_pubkey,
        liquidity_amount,
        current_slot,
    )
