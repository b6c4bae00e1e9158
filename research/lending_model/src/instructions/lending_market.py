"""Lending market creation and ownership transfer"""
from ..constants import NULL_PUBKEY
from ..errors import InvalidAccountInputError, InvalidOwnerError
from ..interfaces import SignerVerifier
from ..state.lending_market import LendingMarket
from .guards import logs_rejection, require_signer


@logs_rejection
def init_lending_market(
    market: LendingMarket,
    owner: bytes,
    quote_currency: bytes,
    bump_seed: int = 0,
    **program_ids: bytes,
) -> LendingMarket:
    """Initialize a zeroed lending market record

    program_ids are passed through to LendingMarket.new (token, oracle and
    mine program accounts).
    """
    if market.is_initialized():
        raise InvalidAccountInputError("Lending market already initialized")
    return LendingMarket.new(owner, quote_currency, bump_seed=bump_seed, **program_ids)


@logs_rejection
def set_lending_market_owner(
    market: LendingMarket, owner: bytes, new_owner: bytes, signer: SignerVerifier
) -> None:
    """Propose new_owner; ownership moves once they call receive_pending_owner"""
    require_signer(signer, owner, market.owner, "Lending market owner")
    market.pending_owner = new_owner


@logs_rejection
def receive_pending_owner(market: LendingMarket, pending_owner: bytes, signer: SignerVerifier) -> None:
    if market.pending_owner == NULL_PUBKEY:
        raise InvalidOwnerError("Lending market has no pending owner")
    require_signer(signer, pending_owner, market.pending_owner, "Pending owner")
    market.owner = pending_owner
    market.pending_owner = NULL_PUBKEY
