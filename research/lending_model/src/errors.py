"""Custom errors for the lending model"""

class LendingError(Exception):
    """Base error class for lending errors"""
    pass

class DecodeError(LendingError):
    """Error for malformed record or instruction bytes"""
    pass

class VersionMismatchError(LendingError):
    """Error for a record written by a newer program version"""
    pass

class MathOverflowError(LendingError):
    """Error for arithmetic overflow/underflow"""
    pass

class NegativeInterestRateError(LendingError):
    """Error for a cumulative borrow rate moving backwards"""
    pass

class InvalidConfigError(LendingError):
    """Error for out of range or inconsistent reserve configuration"""
    pass

class ReserveStaleError(LendingError):
    """Error for a reserve that must be refreshed first"""
    pass

class ObligationStaleError(LendingError):
    """Error for an obligation that must be refreshed first"""
    pass

class ObligationHealthyError(LendingError):
    """Error for liquidating an obligation that is not unhealthy"""
    pass

class InsufficientCollateralError(LendingError):
    """Error for insufficient collateral"""
    pass

class InsufficientLiquidityError(LendingError):
    """Error for a reserve without enough available liquidity"""
    pass

class WithdrawTooLargeError(LendingError):
    """Error for withdrawing more collateral than deposited or allowed"""
    pass

class DuplicateReserveEntryError(LendingError):
    """Error for a reserve listed twice in an obligation"""
    pass

class CapacityExceededError(LendingError):
    """Error for an obligation with too many reserve entries"""
    pass

class ReentrancyDetectedError(LendingError):
    """Error for entering a reserve that is already being mutated"""
    pass

class InvalidAmountError(LendingError):
    """Error for zero amounts and amounts too small to settle"""
    pass

class OperationPausedError(LendingError):
    """Error for deposits, borrows or liquidations paused on a reserve"""
    pass

class DepositLimitExceededError(LendingError):
    """Error for a deposit that would exceed the reserve deposit limit"""
    pass

class InvalidOwnerError(LendingError):
    """Error for an authority that does not own the account"""
    pass

class InvalidAccountInputError(LendingError):
    """Error for accounts that do not belong together"""
    pass

class FlashLoanNotRepaidError(LendingError):
    """Error for a flash loan that was not returned with its fee"""
    pass
