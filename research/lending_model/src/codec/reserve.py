"""Binary layout of Reserve records"""
from ..constants import HOST_FEE_RECEIVER_COUNT, PUBKEY_BYTES, RESERVE_LEN
from ..errors import DecodeError, InvalidConfigError
from ..state.last_update import LastUpdate
from ..state.reserve import Bonus, Reserve, ReserveCollateral, ReserveConfig, ReserveFees, ReserveLiquidity
from .primitives import RecordReader, RecordWriter, check_record_length, read_version

RESERVE_PADDING = 239


def pack_reserve(reserve: Reserve) -> bytes:
    writer = RecordWriter(RESERVE_LEN)
    writer.u8(reserve.version)
    writer.u64(reserve.last_update.slot)
    writer.bool(reserve.last_update.stale)
    writer.pubkey(reserve.lending_market)

    liquidity = reserve.liquidity
    writer.pubkey(liquidity.mint_pubkey)
    writer.u8(liquidity.mint_decimals)
    writer.pubkey(liquidity.supply_pubkey)
    writer.pubkey(liquidity.fee_receiver)
    writer.bool(liquidity.use_pyth_oracle)
    writer.pubkey(liquidity.params_1)
    writer.pubkey(liquidity.params_2)
    writer.u64(liquidity.available_amount)
    writer.decimal(liquidity.borrowed_amount_wads)
    writer.decimal(liquidity.cumulative_borrow_rate_wads)
    writer.decimal(liquidity.market_price)
    writer.decimal(liquidity.owner_unclaimed)

    collateral = reserve.collateral
    writer.pubkey(collateral.mint_pubkey)
    writer.u64(collateral.mint_total_supply)
    writer.pubkey(collateral.supply_pubkey)

    config = reserve.config
    writer.u8(config.optimal_utilization_rate)
    writer.u8(config.loan_to_value_ratio)
    writer.u8(config.liquidation_bonus)
    writer.u8(config.liquidation_threshold)
    writer.u8(config.min_borrow_rate)
    writer.u8(config.optimal_borrow_rate)
    writer.u8(config.max_borrow_rate)
    _pack_fees(writer, config.fees)
    writer.bool(config.deposit_paused)
    writer.bool(config.borrow_paused)
    writer.bool(config.liquidation_paused)

    bonus = reserve.bonus
    writer.pubkey(bonus.un_coll_supply_account)
    writer.decimal(bonus.l_token_mining_index)
    writer.decimal(bonus.borrow_mining_index)
    writer.u64(bonus.total_mining_speed)
    writer.u64(bonus.supply_rate)

    writer.bool(reserve.reentry_lock)
    writer.u64(config.deposit_limit)
    writer.bool(liquidity.is_lp)
    writer.skip(RESERVE_PADDING)
    return writer.getvalue()


def _pack_fees(writer: RecordWriter, fees: ReserveFees) -> None:
    receivers = fees.host_fee_receivers
    if len(receivers) > HOST_FEE_RECEIVER_COUNT:
        raise InvalidConfigError(f"At most {HOST_FEE_RECEIVER_COUNT} host fee receivers can be packed")
    writer.u64(fees.borrow_fee_wad)
    writer.u64(fees.reserve_owner_fee_wad)
    writer.u64(fees.flash_loan_fee_wad)
    writer.u8(fees.host_fee_percentage)
    writer.u8(len(receivers))
    for receiver in receivers:
        writer.pubkey(receiver)
    writer.skip(PUBKEY_BYTES * (HOST_FEE_RECEIVER_COUNT - len(receivers)))


def _unpack_fees(reader: RecordReader) -> ReserveFees:
    borrow_fee_wad = reader.u64()
    reserve_owner_fee_wad = reader.u64()
    flash_loan_fee_wad = reader.u64()
    host_fee_percentage = reader.u8()
    count = reader.u8()
    if count > HOST_FEE_RECEIVER_COUNT:
        raise DecodeError(f"Host fee receiver count {count} exceeds {HOST_FEE_RECEIVER_COUNT}")
    # slots past the count are ignored
    slots = [reader.pubkey() for _ in range(HOST_FEE_RECEIVER_COUNT)]
    return ReserveFees(
        borrow_fee_wad=borrow_fee_wad,
        reserve_owner_fee_wad=reserve_owner_fee_wad,
        flash_loan_fee_wad=flash_loan_fee_wad,
        host_fee_percentage=host_fee_percentage,
        host_fee_receivers=slots[:count],
    )


def unpack_reserve(data: bytes) -> Reserve:
    check_record_length(data, RESERVE_LEN, "Reserve")
    reader = RecordReader(data)
    version = read_version(reader, "Reserve")
    last_update = LastUpdate(slot=reader.u64(), stale=reader.bool())
    lending_market = reader.pubkey()

    liquidity = ReserveLiquidity(
        mint_pubkey=reader.pubkey(),
        mint_decimals=reader.u8(),
        supply_pubkey=reader.pubkey(),
        fee_receiver=reader.pubkey(),
        use_pyth_oracle=reader.bool(),
        params_1=reader.pubkey(),
        params_2=reader.pubkey(),
        available_amount=reader.u64(),
        borrowed_amount_wads=reader.decimal(),
        cumulative_borrow_rate_wads=reader.decimal(),
        market_price=reader.decimal(),
        owner_unclaimed=reader.decimal(),
    )
    collateral = ReserveCollateral(
        mint_pubkey=reader.pubkey(),
        mint_total_supply=reader.u64(),
        supply_pubkey=reader.pubkey(),
    )
    config = ReserveConfig(
        optimal_utilization_rate=reader.u8(),
        loan_to_value_ratio=reader.u8(),
        liquidation_bonus=reader.u8(),
        liquidation_threshold=reader.u8(),
        min_borrow_rate=reader.u8(),
        optimal_borrow_rate=reader.u8(),
        max_borrow_rate=reader.u8(),
        fees=_unpack_fees(reader),
        deposit_paused=reader.bool(),
        borrow_paused=reader.bool(),
        liquidation_paused=reader.bool(),
    )
    bonus = Bonus(
        un_coll_supply_account=reader.pubkey(),
        l_token_mining_index=reader.decimal(),
        borrow_mining_index=reader.decimal(),
        total_mining_speed=reader.u64(),
        supply_rate=reader.u64(),
    )
    reentry_lock = reader.bool()
    config.deposit_limit = reader.u64()
    liquidity.is_lp = reader.bool()
    reader.skip(RESERVE_PADDING)

    return Reserve(
        version=version,
        last_update=last_update,
        lending_market=lending_market,
        liquidity=liquidity,
        collateral=collateral,
        config=config,
        bonus=bonus,
        reentry_lock=reentry_lock,
    )
