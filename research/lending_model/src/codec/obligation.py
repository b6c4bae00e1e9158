"""Binary layout of Obligation records

Deposits and borrows share one slab after the fixed header. Deposits are
packed first, then borrows, each list's length kept in its own count byte.
Slab bytes past the last entry are zero on encode and ignored on decode.
"""
import logging

from ..constants import (
    MAX_OBLIGATION_RESERVES,
    OBLIGATION_COLLATERAL_LEN,
    OBLIGATION_LEN,
    OBLIGATION_LIQUIDITY_LEN,
    OBLIGATION_SLAB_LEN,
)
from ..errors import CapacityExceededError, DecodeError
from ..state.last_update import LastUpdate
from ..state.obligation import Obligation, ObligationCollateral, ObligationLiquidity
from .primitives import RecordReader, RecordWriter, check_record_length, read_version

log = logging.getLogger(__name__)


def slab_usage(deposits_len: int, borrows_len: int) -> int:
    return deposits_len * OBLIGATION_COLLATERAL_LEN + borrows_len * OBLIGATION_LIQUIDITY_LEN


def _check_entries(deposits_len: int, borrows_len: int) -> None:
    if deposits_len + borrows_len > MAX_OBLIGATION_RESERVES:
        raise CapacityExceededError(
            f"Obligation cannot have more than {MAX_OBLIGATION_RESERVES} deposits and borrows combined"
        )
    if slab_usage(deposits_len, borrows_len) > OBLIGATION_SLAB_LEN:
        raise CapacityExceededError(
            f"{deposits_len} deposits and {borrows_len} borrows do not fit the {OBLIGATION_SLAB_LEN} byte slab"
        )


def pack_obligation(obligation: Obligation) -> bytes:
    _check_entries(len(obligation.deposits), len(obligation.borrows))
    writer = RecordWriter(OBLIGATION_LEN)
    writer.u8(obligation.version)
    writer.u64(obligation.last_update.slot)
    writer.bool(obligation.last_update.stale)
    writer.pubkey(obligation.lending_market)
    writer.pubkey(obligation.owner)
    writer.decimal(obligation.deposited_value)
    writer.decimal(obligation.borrowed_value)
    writer.decimal(obligation.allowed_borrow_value)
    writer.decimal(obligation.unhealthy_borrow_value)
    writer.u8(len(obligation.deposits))
    writer.u8(len(obligation.borrows))
    writer.decimal(obligation.unclaimed_mine)

    for collateral in obligation.deposits:
        writer.pubkey(collateral.deposit_reserve)
        writer.u64(collateral.deposited_amount)
        writer.decimal(collateral.market_value)
        writer.decimal(collateral.index)
    for liquidity in obligation.borrows:
        writer.pubkey(liquidity.borrow_reserve)
        writer.decimal(liquidity.cumulative_borrow_rate_wads)
        writer.decimal(liquidity.borrowed_amount_wads)
        writer.decimal(liquidity.market_value)
        writer.decimal(liquidity.index)
    return writer.getvalue()


def unpack_obligation(data: bytes) -> Obligation:
    check_record_length(data, OBLIGATION_LEN, "Obligation")
    reader = RecordReader(data)
    version = read_version(reader, "Obligation")
    last_update = LastUpdate(slot=reader.u64(), stale=reader.bool())
    lending_market = reader.pubkey()
    owner = reader.pubkey()
    deposited_value = reader.decimal()
    borrowed_value = reader.decimal()
    allowed_borrow_value = reader.decimal()
    unhealthy_borrow_value = reader.decimal()
    deposits_len = reader.u8()
    borrows_len = reader.u8()
    unclaimed_mine = reader.decimal()

    try:
        _check_entries(deposits_len, borrows_len)
    except CapacityExceededError as e:
        log.warning("Obligation entry counts are invalid: %s", e)
        raise DecodeError(str(e)) from e

    deposits = [
        ObligationCollateral(
            deposit_reserve=reader.pubkey(),
            deposited_amount=reader.u64(),
            market_value=reader.decimal(),
            index=reader.decimal(),
        )
        for _ in range(deposits_len)
    ]
    borrows = [
        ObligationLiquidity(
            borrow_reserve=reader.pubkey(),
            cumulative_borrow_rate_wads=reader.decimal(),
            borrowed_amount_wads=reader.decimal(),
            market_value=reader.decimal(),
            index=reader.decimal(),
        )
        for _ in range(borrows_len)
    ]

    if len({c.deposit_reserve for c in deposits}) != len(deposits):
        log.warning("Obligation lists a deposit reserve twice")
        raise DecodeError("Duplicate deposit reserve in obligation")
    if len({l.borrow_reserve for l in borrows}) != len(borrows):
        log.warning("Obligation lists a borrow reserve twice")
        raise DecodeError("Duplicate borrow reserve in obligation")

    return Obligation(
        version=version,
        last_update=last_update,
        lending_market=lending_market,
        owner=owner,
        deposits=deposits,
        borrows=borrows,
        deposited_value=deposited_value,
        borrowed_value=borrowed_value,
        allowed_borrow_value=allowed_borrow_value,
        unhealthy_borrow_value=unhealthy_borrow_value,
        unclaimed_mine=unclaimed_mine,
    )
