"""Operation encoding: one tag byte followed by little-endian fields

Trailing bytes after the declared fields are ignored, except for FlashLoan
where they are the receiver's callback data.

InitMining, DepositMining, WithdrawMining and ClaimMiningMine act on a
per-user mining account that this model does not keep. They decode so that
every tag of the operation set is recognised, but no operation in
`instructions` consumes them.
"""
import logging
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Type

from ..constants import PUBKEY_BYTES
from ..errors import DecodeError
from ..state.reserve import ReserveConfig, ReserveFees
from .primitives import RecordReader, RecordWriter

log = logging.getLogger(__name__)


@dataclass
class LendingInstruction:
    tag: ClassVar[int] = -1

    def _decode_fields(self, reader: RecordReader) -> None:
        pass

    def _encode_fields(self, writer: RecordWriter) -> None:
        pass

    def _payload_len(self) -> int:
        return 0

    def encode(self) -> bytes:
        writer = RecordWriter(1 + self._payload_len())
        writer.u8(self.tag)
        self._encode_fields(writer)
        return writer.getvalue()


@dataclass
class AmountInstruction(LendingInstruction):
    """Operations whose only field is a u64 amount, MAX_AMOUNT meaning all of it"""
    amount: int = 0

    def _decode_fields(self, reader):
        self.amount = reader.u64()

    def _encode_fields(self, writer):
        writer.u64(self.amount)

    def _payload_len(self):
        return 8


@dataclass
class InitLendingMarket(LendingInstruction):
    tag: ClassVar[int] = 0
    owner: bytes = bytes(PUBKEY_BYTES)
    quote_currency: bytes = bytes(PUBKEY_BYTES)

    def _decode_fields(self, reader):
        self.owner = reader.pubkey()
        self.quote_currency = reader.pubkey()

    def _encode_fields(self, writer):
        writer.pubkey(self.owner)
        writer.pubkey(self.quote_currency)

    def _payload_len(self):
        return 2 * PUBKEY_BYTES


@dataclass
class SetLendingMarketOwner(LendingInstruction):
    tag: ClassVar[int] = 1
    new_owner: bytes = bytes(PUBKEY_BYTES)

    def _decode_fields(self, reader):
        self.new_owner = reader.pubkey()

    def _encode_fields(self, writer):
        writer.pubkey(self.new_owner)

    def _payload_len(self):
        return PUBKEY_BYTES


@dataclass
class InitReserve(LendingInstruction):
    """Reserve configuration plus mining and oracle settings

    Payload: seven u8 percentages, borrow/owner/flash fee wads as u64, host
    fee percentage u8, total_mining_speed u64, kink_util_rate u64,
    use_pyth_oracle bool, is_lp bool.
    """
    tag: ClassVar[int] = 2
    config: ReserveConfig = field(default_factory=ReserveConfig)
    total_mining_speed: int = 0
    kink_util_rate: int = 0
    use_pyth_oracle: bool = False
    is_lp: bool = False

    def _decode_fields(self, reader):
        self.config = ReserveConfig(
            optimal_utilization_rate=reader.u8(),
            loan_to_value_ratio=reader.u8(),
            liquidation_bonus=reader.u8(),
            liquidation_threshold=reader.u8(),
            min_borrow_rate=reader.u8(),
            optimal_borrow_rate=reader.u8(),
            max_borrow_rate=reader.u8(),
        )
        self.config.fees = ReserveFees(
            borrow_fee_wad=reader.u64(),
            reserve_owner_fee_wad=reader.u64(),
            flash_loan_fee_wad=reader.u64(),
            host_fee_percentage=reader.u8(),
        )
        self.total_mining_speed = reader.u64()
        self.kink_util_rate = reader.u64()
        self.use_pyth_oracle = reader.bool()
        self.is_lp = reader.bool()

    def _encode_fields(self, writer):
        config = self.config
        for percent in (
            config.optimal_utilization_rate,
            config.loan_to_value_ratio,
            config.liquidation_bonus,
            config.liquidation_threshold,
            config.min_borrow_rate,
            config.optimal_borrow_rate,
            config.max_borrow_rate,
        ):
            writer.u8(percent)
        writer.u64(config.fees.borrow_fee_wad)
        writer.u64(config.fees.reserve_owner_fee_wad)
        writer.u64(config.fees.flash_loan_fee_wad)
        writer.u8(config.fees.host_fee_percentage)
        writer.u64(self.total_mining_speed)
        writer.u64(self.kink_util_rate)
        writer.bool(self.use_pyth_oracle)
        writer.bool(self.is_lp)

    def _payload_len(self):
        return 7 + 3 * 8 + 1 + 8 + 8 + 1 + 1


@dataclass
class RefreshReserve(LendingInstruction):
    tag: ClassVar[int] = 3


@dataclass
class DepositReserveLiquidity(AmountInstruction):
    tag: ClassVar[int] = 4


@dataclass
class RedeemReserveCollateral(AmountInstruction):
    tag: ClassVar[int] = 5


@dataclass
class InitObligation(LendingInstruction):
    tag: ClassVar[int] = 6


@dataclass
class RefreshObligation(LendingInstruction):
    tag: ClassVar[int] = 7


@dataclass
class DepositObligationCollateral(AmountInstruction):
    tag: ClassVar[int] = 8


@dataclass
class WithdrawObligationCollateral(AmountInstruction):
    tag: ClassVar[int] = 9


@dataclass
class BorrowObligationLiquidity(AmountInstruction):
    tag: ClassVar[int] = 10


@dataclass
class RepayObligationLiquidity(AmountInstruction):
    tag: ClassVar[int] = 11


@dataclass
class LiquidateObligation(AmountInstruction):
    tag: ClassVar[int] = 12


@dataclass
class FlashLoan(LendingInstruction):
    tag: ClassVar[int] = 13
    amount: int = 0
    callback_data: bytes = b""

    def _decode_fields(self, reader):
        self.amount = reader.u64()
        self.callback_data = reader.rest()

    def _encode_fields(self, writer):
        writer.u64(self.amount)
        writer.put(self.callback_data)

    def _payload_len(self):
        return 8 + len(self.callback_data)


@dataclass
class SetConfig(LendingInstruction):
    tag: ClassVar[int] = 14


@dataclass
class InitMining(LendingInstruction):
    tag: ClassVar[int] = 16


@dataclass
class DepositMining(AmountInstruction):
    tag: ClassVar[int] = 18


@dataclass
class WithdrawMining(AmountInstruction):
    tag: ClassVar[int] = 19


@dataclass
class ClaimMiningMine(LendingInstruction):
    tag: ClassVar[int] = 20


@dataclass
class ClaimObligationMine(LendingInstruction):
    tag: ClassVar[int] = 21


@dataclass
class ClaimOwnerFee(LendingInstruction):
    tag: ClassVar[int] = 22


@dataclass
class ReceivePendingOwner(LendingInstruction):
    tag: ClassVar[int] = 23


@dataclass
class RefreshReserves(LendingInstruction):
    tag: ClassVar[int] = 24


@dataclass
class LiquidateObligation2(AmountInstruction):
    tag: ClassVar[int] = 25


INSTRUCTIONS: Dict[int, Type[LendingInstruction]] = {
    cls.tag: cls
    for cls in (
        InitLendingMarket,
        SetLendingMarketOwner,
        InitReserve,
        RefreshReserve,
        DepositReserveLiquidity,
        RedeemReserveCollateral,
        InitObligation,
        RefreshObligation,
        DepositObligationCollateral,
        WithdrawObligationCollateral,
        BorrowObligationLiquidity,
        RepayObligationLiquidity,
        LiquidateObligation,
        FlashLoan,
        SetConfig,
        InitMining,
        DepositMining,
        WithdrawMining,
        ClaimMiningMine,
        ClaimObligationMine,
        ClaimOwnerFee,
        ReceivePendingOwner,
        RefreshReserves,
        LiquidateObligation2,
    )
}


def decode_instruction(data: bytes) -> LendingInstruction:
    if not data:
        raise DecodeError("Instruction is empty")
    tag = data[0]
    instruction_type = INSTRUCTIONS.get(tag)
    if instruction_type is None:
        log.info("Rejected unknown instruction tag %d", tag)
        raise DecodeError(f"Instruction tag {tag} cannot be unpacked")
    instruction = instruction_type()
    instruction._decode_fields(RecordReader(data[1:]))
    return instruction

