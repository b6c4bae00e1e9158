"""Lending market state management"""
from dataclasses import dataclass

from ..constants import NULL_PUBKEY, PROGRAM_VERSION, UNINITIALIZED_VERSION


@dataclass
class LendingMarket:
    """Market wide configuration shared by every reserve and obligation"""
    version: int = UNINITIALIZED_VERSION
    bump_seed: int = 0
    pending_owner: bytes = NULL_PUBKEY
    owner: bytes = NULL_PUBKEY
    quote_currency: bytes = NULL_PUBKEY  # e.g. b"USD" null padded, or a mint pubkey
    token_program_id: bytes = NULL_PUBKEY
    oracle_program_id: bytes = NULL_PUBKEY
    larix_oracle_program_id: bytes = NULL_PUBKEY
    larix_oracle_id: bytes = NULL_PUBKEY
    mine_mint: bytes = NULL_PUBKEY
    mine_supply_account: bytes = NULL_PUBKEY
    mine_lock_program: bytes = NULL_PUBKEY
    lock_larix_times_to_time: int = 0  # lock time = subsidy times * this
    max_claim_times: int = 0  # 200 means at most 2 times, never below 100

    @classmethod
    def new(
        cls,
        owner: bytes,
        quote_currency: bytes,
        bump_seed: int = 0,
        token_program_id: bytes = NULL_PUBKEY,
        oracle_program_id: bytes = NULL_PUBKEY,
        larix_oracle_program_id: bytes = NULL_PUBKEY,
        larix_oracle_id: bytes = NULL_PUBKEY,
        mine_mint: bytes = NULL_PUBKEY,
        mine_supply_account: bytes = NULL_PUBKEY,
        mine_lock_program: bytes = NULL_PUBKEY,
    ) -> "LendingMarket":
        return cls(
            version=PROGRAM_VERSION,
            bump_seed=bump_seed,
            owner=owner,
            quote_currency=quote_currency,
            token_program_id=token_program_id,
            oracle_program_id=oracle_program_id,
            larix_oracle_program_id=larix_oracle_program_id,
            larix_oracle_id=larix_oracle_id,
            mine_mint=mine_mint,
            mine_supply_account=mine_supply_account,
            mine_lock_program=mine_lock_program,
        )

    def is_initialized(self) -> bool:
        return self.version != UNINITIALIZED_VERSION
