"""Flash loans: borrow and return liquidity within one call"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import ProgramConfig
from ..errors import FlashLoanNotRepaidError, InvalidAccountInputError
from ..interfaces import FlashLoanReceiver, TokenTransfer
from ..math.decimal import Decimal
from ..state.reserve import Reserve
from .guards import logs_rejection, reentry_guard, require_amount

log = logging.getLogger(__name__)


@dataclass
class FlashLoanResult:
    amount: int
    fee: int
    host_fee: int


@logs_rejection
def flash_loan(
    reserve: Reserve,
    amount: int,
    receiver: FlashLoanReceiver,
    callback_data: bytes,
    receiver_program_id: bytes,
    program_config: ProgramConfig,
    token_transfer: TokenTransfer,
    host_fee_receiver: Optional[bytes] = None,
) -> FlashLoanResult:
    """Lend amount to receiver and require it back with the flash loan fee

    The reserve stays locked while the receiver runs, so the receiver cannot
    operate on the same reserve. Once repayment is confirmed the owner fee
    goes to the reserve fee receiver and the host fee to host_fee_receiver,
    or to the fee receiver when no host is given.
    """
    with reentry_guard(reserve):
        require_amount(amount, "Flash loan amount")
        if receiver_program_id == program_config.program_id:
            raise InvalidAccountInputError("Lending program cannot be used as the flash loan receiver program")
        fees = reserve.config.fees
        if host_fee_receiver is not None and host_fee_receiver not in fees.host_fee_receivers:
            raise InvalidAccountInputError("Host fee receiver is not registered on the reserve")

        fee, host_fee = fees.calculate_flash_loan_fees(Decimal.from_integer(amount))
        original_available = reserve.liquidity.available_amount
        reserve.liquidity.withdraw(amount)

        returned = receiver.receive_flash_loan(amount + fee, callback_data)
        reserve.liquidity.deposit(returned)
        if reserve.liquidity.available_amount < original_available + fee:
            raise FlashLoanNotRepaidError(
                f"Flash loan of {amount} plus fee {fee} was not repaid, received {returned}"
            )

        reserve.liquidity.withdraw(fee)
        liquidity = reserve.liquidity
        owner_fee = fee - host_fee
        if owner_fee:
            token_transfer.transfer_tokens(liquidity.supply_pubkey, liquidity.fee_receiver, reserve.lending_market, owner_fee)
        if host_fee:
            token_transfer.transfer_tokens(
                liquidity.supply_pubkey,
                host_fee_receiver if host_fee_receiver is not None else liquidity.fee_receiver,
                reserve.lending_market,
                host_fee,
            )

    log.debug("Flash loan of %d repaid with fee %d, host fee %d", amount, fee, host_fee)
    return FlashLoanResult(amount, fee, host_fee)
