"""Operation decoding"""
import pytest

from lending_model.src.codec.instruction import (
    INSTRUCTIONS,
    FlashLoan,
    InitLendingMarket,
    InitReserve,
    LiquidateObligation,
    LiquidateObligation2,
    RefreshReserve,
    SetLendingMarketOwner,
    WithdrawObligationCollateral,
    decode_instruction,
)
from lending_model.src.constants import MAX_AMOUNT
from lending_model.src.errors import DecodeError
from lending_model.src.state.reserve import ReserveConfig, ReserveFees

from conftest import pubkey


def test_decode_init_lending_market():
    data = bytes([0]) + pubkey(2) + b"USD".ljust(32, b"\0")
    instruction = decode_instruction(data)
    assert instruction == InitLendingMarket(owner=pubkey(2), quote_currency=b"USD".ljust(32, b"\0"))
    assert instruction.encode() == data


def test_decode_set_lending_market_owner():
    instruction = decode_instruction(bytes([1]) + pubkey(9))
    assert instruction == SetLendingMarketOwner(new_owner=pubkey(9))


def test_decode_init_reserve():
    payload = bytes([80, 50, 5, 55, 0, 10, 100])
    payload += (10**16).to_bytes(8, "little")  # 1% borrow fee
    payload += (2 * 10**17).to_bytes(8, "little")  # 20% of interest to the owner
    payload += (3 * 10**15).to_bytes(8, "little")  # 0.3% flash loan fee
    payload += bytes([20])
    payload += (1_000).to_bytes(8, "little")
    payload += (8 * 10**17).to_bytes(8, "little")
    payload += bytes([1, 0])

    instruction = decode_instruction(bytes([2]) + payload)
    assert isinstance(instruction, InitReserve)
    assert instruction.config == ReserveConfig(
        optimal_utilization_rate=80,
        loan_to_value_ratio=50,
        liquidation_bonus=5,
        liquidation_threshold=55,
        min_borrow_rate=0,
        optimal_borrow_rate=10,
        max_borrow_rate=100,
        fees=ReserveFees(
            borrow_fee_wad=10**16,
            reserve_owner_fee_wad=2 * 10**17,
            flash_loan_fee_wad=3 * 10**15,
            host_fee_percentage=20,
        ),
    )
    assert instruction.total_mining_speed == 1_000
    assert instruction.kink_util_rate == 8 * 10**17
    assert instruction.use_pyth_oracle is True
    assert instruction.is_lp is False
    assert instruction.encode() == bytes([2]) + payload


@pytest.mark.parametrize("tag,amount", [(4, 1), (5, 2), (8, 3), (9, MAX_AMOUNT), (10, 5), (11, 6), (12, 7), (18, 8), (19, 9), (25, 10)])
def test_decode_amount_instructions(tag, amount):
    data = bytes([tag]) + amount.to_bytes(8, "little")
    instruction = decode_instruction(data)
    assert type(instruction) is INSTRUCTIONS[tag]
    assert instruction.amount == amount
    assert instruction.encode() == data


def test_liquidations_decode_to_distinct_operations():
    first = decode_instruction(bytes([12]) + (5).to_bytes(8, "little"))
    second = decode_instruction(bytes([25]) + (5).to_bytes(8, "little"))
    assert isinstance(first, LiquidateObligation)
    assert isinstance(second, LiquidateObligation2)


def test_max_amount_survives_decoding():
    instruction = decode_instruction(bytes([9]) + b"\xff" * 8)
    assert instruction == WithdrawObligationCollateral(amount=MAX_AMOUNT)


def test_flash_loan_carries_callback_data():
    data = bytes([13]) + (500).to_bytes(8, "little") + b"swap:route-1"
    instruction = decode_instruction(data)
    assert instruction == FlashLoan(amount=500, callback_data=b"swap:route-1")
    assert instruction.encode() == data
    assert decode_instruction(bytes([13]) + (500).to_bytes(8, "little")).callback_data == b""


@pytest.mark.parametrize("tag", [3, 6, 7, 14, 16, 20, 21, 22, 23, 24])
def test_decode_field_less_instructions(tag):
    instruction = decode_instruction(bytes([tag]))
    assert instruction.tag == tag
    assert instruction.encode() == bytes([tag])


def test_trailing_bytes_are_ignored():
    assert decode_instruction(bytes([3, 0xAA])) == RefreshReserve()


@pytest.mark.parametrize("data", [
    b"",
    bytes([15]),
    bytes([17]),
    bytes([26]),
    bytes([255]),
    bytes([4]) + b"\x01" * 7,
    bytes([0]) + pubkey(2),
    bytes([13]),
    bytes([2]) + bytes(7),
])
def test_malformed_instructions_are_rejected(data):
    with pytest.raises(DecodeError):
        decode_instruction(data)


def test_init_reserve_rejects_bad_boolean():
    payload = bytes(7) + bytes(24) + bytes(1) + bytes(16) + bytes([2, 0])
    with pytest.raises(DecodeError):
        decode_instruction(bytes([2]) + payload)
