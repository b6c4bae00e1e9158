"""Obligation bookkeeping and the collateral/borrow operations"""
import pytest
from hypothesis import given, strategies as st

from lending_model.src.constants import MAX_AMOUNT, U128_MAX, WAD
from lending_model.src.errors import (
    CapacityExceededError,
    DuplicateReserveEntryError,
    InsufficientCollateralError,
    InvalidAccountInputError,
    InvalidOwnerError,
    NegativeInterestRateError,
    ObligationStaleError,
    OperationPausedError,
    ReserveStaleError,
    WithdrawTooLargeError,
)
from lending_model.src.instructions.obligation import (
    borrow_obligation_liquidity,
    claim_obligation_mine,
    deposit_obligation_collateral,
    init_obligation,
    refresh_obligation,
    repay_obligation_liquidity,
    withdraw_obligation_collateral,
)
from lending_model.src.instructions.reserve import refresh_reserve
from lending_model.src.math.decimal import Decimal
from lending_model.src.state.obligation import Obligation, ObligationCollateral, ObligationLiquidity

from conftest import MARKET, OBLIGATION_OWNER, SOL_RESERVE, USDC_RESERVE, StaticSigner, make_reserve, pubkey


class Position:
    """A USDC borrow against SOL collateral, kept refreshed by the test"""

    def __init__(self, obligation: Obligation):
        self.usdc = make_reserve(decimals=0, available=10_000)
        self.sol = make_reserve(price=10, decimals=0, available=1_000)
        self.obligation = obligation
        self.slot = 0

    @property
    def reserves(self):
        return {USDC_RESERVE: self.usdc, SOL_RESERVE: self.sol}

    def refresh(self, slot: int = None) -> Obligation:
        if slot is not None:
            self.slot = slot
        self.usdc = refresh_reserve(self.usdc, self.slot, self.usdc.liquidity.market_price)
        self.sol = refresh_reserve(self.sol, self.slot, self.sol.liquidity.market_price)
        self.obligation = refresh_obligation(self.obligation, self.reserves, self.slot)
        return self.obligation

    def deposit(self, amount: int) -> None:
        deposit_obligation_collateral(self.obligation, self.sol, SOL_RESERVE, amount, self.slot)
        self.refresh()

    def borrow(self, amount: int):
        result = borrow_obligation_liquidity(self.obligation, self.usdc, USDC_RESERVE, amount, self.slot)
        self.refresh()
        return result


@pytest.fixture
def position(obligation):
    return Position(obligation)


# =============================================================================
# ENTRY BOOKKEEPING
# =============================================================================

@given(
    borrowed=st.integers(min_value=1, max_value=10**9),
    old_rate=st.integers(min_value=WAD, max_value=10 * WAD),
    delta=st.integers(min_value=10, max_value=WAD),
)
def test_accrue_interest_only_grows_debt(borrowed, old_rate, delta):
    liquidity = ObligationLiquidity(
        cumulative_borrow_rate_wads=Decimal(old_rate), borrowed_amount_wads=Decimal.from_integer(borrowed)
    )
    liquidity.accrue_interest(Decimal(old_rate))
    assert liquidity.borrowed_amount_wads == Decimal.from_integer(borrowed)

    with pytest.raises(NegativeInterestRateError):
        liquidity.accrue_interest(Decimal(old_rate - 1))

    liquidity.accrue_interest(Decimal(old_rate + delta))
    assert liquidity.borrowed_amount_wads > Decimal.from_integer(borrowed)
    assert liquidity.cumulative_borrow_rate_wads == Decimal(old_rate + delta)


@given(
    borrowed=st.integers(min_value=1, max_value=U128_MAX // 2),
    settle=st.integers(min_value=1, max_value=U128_MAX // 2),
)
def test_repay_removes_entry_only_when_settled(borrowed, settle):
    obligation = Obligation.new(0, MARKET, OBLIGATION_OWNER)
    obligation.borrows.append(ObligationLiquidity(borrow_reserve=USDC_RESERVE, borrowed_amount_wads=Decimal(borrowed)))
    obligation.repay(Decimal(settle), 0)
    if settle >= borrowed:
        assert obligation.borrows == []
    else:
        assert obligation.borrows[0].borrowed_amount_wads == Decimal(borrowed - settle)


def test_entry_capacity_and_duplicates(obligation):
    for n in range(1, 11):
        obligation.insert_collateral(ObligationCollateral(deposit_reserve=pubkey(n)))
    with pytest.raises(CapacityExceededError):
        obligation.insert_liquidity(ObligationLiquidity(borrow_reserve=pubkey(50)))
    with pytest.raises(DuplicateReserveEntryError):
        obligation.insert_collateral(ObligationCollateral(deposit_reserve=pubkey(1)))

    obligation.deposits.pop()
    obligation.insert_liquidity(ObligationLiquidity(borrow_reserve=pubkey(50)))
    with pytest.raises(DuplicateReserveEntryError):
        obligation.insert_liquidity(ObligationLiquidity(borrow_reserve=pubkey(50)))
    assert obligation.entry_count() == 10


def test_missing_entries(obligation):
    with pytest.raises(InvalidAccountInputError):
        obligation.find_collateral_in_deposits(SOL_RESERVE)
    with pytest.raises(InvalidAccountInputError):
        obligation.find_liquidity_in_borrows(USDC_RESERVE)


def test_init_obligation(lending_market, signer):
    obligation = init_obligation(Obligation(), 5, lending_market, MARKET, OBLIGATION_OWNER, signer)
    assert obligation.is_initialized()
    assert obligation.owner == OBLIGATION_OWNER
    assert obligation.last_update.slot == 5 and obligation.last_update.stale

    with pytest.raises(InvalidAccountInputError):
        init_obligation(obligation, 5, lending_market, MARKET, OBLIGATION_OWNER, signer)
    with pytest.raises(InvalidOwnerError):
        init_obligation(Obligation(), 5, lending_market, MARKET, OBLIGATION_OWNER, StaticSigner())


# =============================================================================
# REFRESH
# =============================================================================

def test_refresh_values(position):
    position.deposit(100)
    obligation = position.obligation
    assert obligation.deposited_value == Decimal.from_integer(1_000)
    assert obligation.allowed_borrow_value == Decimal.from_integer(500)
    assert obligation.unhealthy_borrow_value == Decimal.from_integer(550)
    assert obligation.borrowed_value == Decimal.zero()

    position.borrow(400)
    assert position.obligation.borrowed_value == Decimal.from_integer(400)
    assert position.obligation.remaining_borrow_value() == Decimal.from_integer(100)
    assert not position.obligation.is_unhealthy()


def test_refresh_accrues_interest_with_the_reserve(position):
    position.deposit(100)
    position.borrow(400)
    obligation = position.refresh(slot=1_000)

    reserve_rate = position.usdc.liquidity.cumulative_borrow_rate_wads
    assert reserve_rate > Decimal.one()
    assert obligation.borrows[0].cumulative_borrow_rate_wads == reserve_rate
    assert obligation.borrows[0].borrowed_amount_wads == position.usdc.liquidity.borrowed_amount_wads
    assert obligation.borrowed_value > Decimal.from_integer(400)


def test_refresh_requires_fresh_reserves(position):
    position.deposit(100)
    with pytest.raises(ReserveStaleError):
        refresh_obligation(position.obligation, position.reserves, 1)
    with pytest.raises(InvalidAccountInputError):
        refresh_obligation(position.obligation, {USDC_RESERVE: position.usdc}, 0)


def test_refresh_rejects_negative_interest(position):
    position.deposit(100)
    position.borrow(400)
    position.obligation.borrows[0].cumulative_borrow_rate_wads = Decimal.from_integer(2)
    with pytest.raises(NegativeInterestRateError):
        refresh_obligation(position.obligation, position.reserves, 0)
    # the failed refresh did not touch the caller's record
    assert position.obligation.borrows[0].borrowed_amount_wads == Decimal.from_integer(400)


def test_deposit_into_other_market_reserve(obligation):
    reserve = make_reserve(available=100)
    reserve.lending_market = pubkey(9)
    with pytest.raises(InvalidAccountInputError):
        deposit_obligation_collateral(obligation, reserve, SOL_RESERVE, 10, 0)


# =============================================================================
# WITHDRAW
# =============================================================================

def test_scenario_c_withdraw_without_borrows(position):
    position.deposit(100)
    with pytest.raises(WithdrawTooLargeError):
        withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, 101, 0)

    assert withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, MAX_AMOUNT, 0) == 100
    assert position.obligation.deposits == []
    assert position.obligation.last_update.stale


def test_withdraw_limited_by_borrows(position):
    position.deposit(100)
    position.borrow(400)
    # 100 of headroom at 50% LTV frees 200 of value, 20 SOL
    with pytest.raises(WithdrawTooLargeError):
        withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, 21, 0)
    assert withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, MAX_AMOUNT, 0) == 20
    assert position.obligation.deposits[0].deposited_amount == 80


def test_withdraw_requires_fresh_obligation(position):
    position.deposit(100)
    position.obligation.last_update.mark_stale()
    with pytest.raises(ObligationStaleError):
        withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, 10, 0)


def test_slot_behind_the_obligation_reads_as_stale(position):
    position.deposit(100)
    position.refresh(10)
    with pytest.raises(ReserveStaleError):
        withdraw_obligation_collateral(position.obligation, position.sol, SOL_RESERVE, 10, 5)

    sol_at_5 = make_reserve(price=10, decimals=0, available=1_000, slot=5)
    with pytest.raises(ObligationStaleError):
        withdraw_obligation_collateral(position.obligation, sol_at_5, SOL_RESERVE, 10, 5)
    assert position.obligation.deposits[0].deposited_amount == 100


# =============================================================================
# BORROW / REPAY
# =============================================================================

def test_borrow_within_allowed_value(position):
    position.deposit(100)
    result = position.borrow(400)
    assert result.receive_amount == 400
    assert result.borrow_fee == 0
    assert position.usdc.liquidity.available_amount == 9_600
    assert position.obligation.borrows[0].borrowed_amount_wads == Decimal.from_integer(400)


def test_borrow_max_uses_remaining_value(position):
    position.deposit(100)
    result = position.borrow(MAX_AMOUNT)
    assert result.receive_amount == 500
    assert position.obligation.remaining_borrow_value() == Decimal.zero()


def test_borrow_rejections(position):
    with pytest.raises(ObligationStaleError):
        borrow_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, 10, 0)

    position.refresh()
    with pytest.raises(InsufficientCollateralError):
        borrow_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, 10, 0)

    position.deposit(100)
    with pytest.raises(InsufficientCollateralError):
        borrow_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, 501, 0)
    assert not position.usdc.reentry_lock
    assert position.usdc.liquidity.available_amount == 10_000

    position.usdc.config.borrow_paused = True
    with pytest.raises(OperationPausedError):
        borrow_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, 10, 0)


def test_partial_repay(position):
    position.deposit(100)
    position.borrow(400)
    result = repay_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, 100, 0)
    assert result.repay_amount == 100
    assert position.obligation.borrows[0].borrowed_amount_wads == Decimal.from_integer(300)
    assert position.usdc.liquidity.available_amount == 9_700
    assert position.usdc.liquidity.borrowed_amount_wads == Decimal.from_integer(300)


def test_full_repay_removes_borrow(position):
    position.deposit(100)
    position.borrow(400)
    result = repay_obligation_liquidity(position.obligation, position.usdc, USDC_RESERVE, MAX_AMOUNT, 0)
    assert result.repay_amount == 400
    assert position.obligation.borrows == []
    assert position.usdc.liquidity.borrowed_amount_wads == Decimal.zero()
    assert position.usdc.liquidity.available_amount == 10_000


# =============================================================================
# MINING
# =============================================================================

def test_claim_obligation_mine(position, lending_market, signer, token_transfer):
    position.sol.bonus.total_mining_speed = 1_000
    position.sol.bonus.supply_rate = 8 * 10**17
    position.deposit(100)

    # 10 slots of 1000 mine over 1000 collateral tokens, 100 of them ours
    obligation = position.refresh(slot=10)
    assert obligation.unclaimed_mine == Decimal.from_integer(1_000)

    with pytest.raises(InvalidOwnerError):
        claim_obligation_mine(obligation, lending_market, pubkey(77), signer, token_transfer, pubkey(50), 10)

    assert claim_obligation_mine(obligation, lending_market, OBLIGATION_OWNER, signer, token_transfer, pubkey(50), 10) == 1_000
    assert obligation.unclaimed_mine == Decimal.zero()
    assert token_transfer.transfers == [(lending_market.mine_supply_account, pubkey(50), MARKET, 1_000)]
    assert claim_obligation_mine(obligation, lending_market, OBLIGATION_OWNER, signer, token_transfer, pubkey(50), 10) == 0
