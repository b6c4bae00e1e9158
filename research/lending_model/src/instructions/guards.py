"""Checks shared by the lending operations"""
import functools
import logging
from contextlib import contextmanager
from typing import Iterator

from ..errors import (
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidOwnerError,
    LendingError,
    ObligationStaleError,
    ReentrancyDetectedError,
    ReserveStaleError,
)
from ..interfaces import SignerVerifier
from ..state.obligation import Obligation
from ..state.reserve import Reserve


def logs_rejection(operation):
    """Log each LendingError an operation raises at INFO, then re-raise it"""
    log = logging.getLogger(operation.__module__)

    @functools.wraps(operation)
    def wrapper(*args, **kwargs):
        try:
            return operation(*args, **kwargs)
        except LendingError as e:
            log.info("%s rejected: %s", operation.__name__, e)
            raise

    return wrapper


@contextmanager
def reentry_guard(*reserves: Reserve) -> Iterator[None]:
    """Hold the re-entry lock of every given reserve for the duration of the block

    The same reserve object may be passed more than once. Locks are released
    on every exit path.
    """
    unique = list({id(reserve): reserve for reserve in reserves}.values())
    for reserve in unique:
        if reserve.reentry_lock:
            raise ReentrancyDetectedError("Reserve is already being modified")
    for reserve in unique:
        reserve.reentry_lock = True
    try:
        yield
    finally:
        for reserve in unique:
            reserve.reentry_lock = False


def require_amount(amount: int, what: str = "Amount") -> None:
    if amount == 0:
        raise InvalidAmountError(f"{what} provided cannot be zero")


def require_fresh_reserve(reserve: Reserve, current_slot: int) -> None:
    if reserve.last_update.is_stale(current_slot):
        raise ReserveStaleError("Reserve is stale and must be refreshed in the current slot")


def require_fresh_obligation(obligation: Obligation, current_slot: int) -> None:
    if obligation.last_update.is_stale(current_slot):
        raise ObligationStaleError("Obligation is stale and must be refreshed in the current slot")


def require_same_market(reserve: Reserve, lending_market: bytes) -> None:
    if reserve.lending_market != lending_market:
        raise InvalidAccountInputError("Reserve belongs to a different lending market")


def require_signer(signer: SignerVerifier, authority: bytes, expected: bytes, what: str) -> None:
    if authority != expected:
        raise InvalidOwnerError(f"{what} does not match")
    if not signer.verify_signer(authority):
        raise InvalidOwnerError(f"{what} must be a signer")
