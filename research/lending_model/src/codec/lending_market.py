"""Binary layout of LendingMarket records"""
from ..constants import LENDING_MARKET_LEN
from ..state.lending_market import LendingMarket
from .primitives import RecordReader, RecordWriter, check_record_length, read_version

LENDING_MARKET_PADDING = 86


def pack_lending_market(market: LendingMarket) -> bytes:
    writer = RecordWriter(LENDING_MARKET_LEN)
    writer.u8(market.version)
    writer.u8(market.bump_seed)
    writer.pubkey(market.pending_owner)
    writer.pubkey(market.owner)
    writer.pubkey(market.quote_currency)
    writer.pubkey(market.token_program_id)
    writer.pubkey(market.oracle_program_id)
    writer.pubkey(market.larix_oracle_program_id)
    writer.pubkey(market.larix_oracle_id)
    writer.pubkey(market.mine_mint)
    writer.pubkey(market.mine_supply_account)
    writer.pubkey(market.mine_lock_program)
    writer.u64(market.lock_larix_times_to_time)
    writer.u16(market.max_claim_times)
    writer.skip(LENDING_MARKET_PADDING)
    return writer.getvalue()


def unpack_lending_market(data: bytes) -> LendingMarket:
    check_record_length(data, LENDING_MARKET_LEN, "Lending market")
    reader = RecordReader(data)
    return LendingMarket(
        version=read_version(reader, "Lending market"),
        bump_seed=reader.u8(),
        pending_owner=reader.pubkey(),
        owner=reader.pubkey(),
        quote_currency=reader.pubkey(),
        token_program_id=reader.pubkey(),
        oracle_program_id=reader.pubkey(),
        larix_oracle_program_id=reader.pubkey(),
        larix_oracle_id=reader.pubkey(),
        mine_mint=reader.pubkey(),
        mine_supply_account=reader.pubkey(),
        mine_lock_program=reader.pubkey(),
        lock_larix_times_to_time=reader.u64(),
        max_claim_times=reader.u16(),
    )
