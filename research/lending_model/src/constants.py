# Fixed point scale factors
WAD = 1_000_000_000_000_000_000  # 1e18 for Decimal
HALF_WAD = WAD // 2
RATE_SCALE = 1_000_000_000_000  # 1e12 for Rate
PERCENT_SCALER = 100

# Integer bounds
U8_MAX = 2**8 - 1
U16_MAX = 2**16 - 1
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

# Amount fields carrying this value mean "use all of it"
MAX_AMOUNT = U64_MAX

# Record versions
PROGRAM_VERSION = 1
UNINITIALIZED_VERSION = 0  # records are created zeroed

# Time constants
SLOTS_PER_YEAR = 78_840_000

# Liquidation constants
LIQUIDATION_CLOSE_FACTOR = 50  # percent of a borrow repayable per liquidation
LIQUIDATION_CLOSE_AMOUNT = 2  # borrows below this are closed out entirely

# Collateral tokens are initially valued 1:1 against liquidity
INITIAL_COLLATERAL_RATIO = 1

# Obligation constants
MAX_OBLIGATION_RESERVES = 10  # deposits and borrows combined

# Reserve constants
HOST_FEE_RECEIVER_COUNT = 5

# Record layout
PUBKEY_BYTES = 32
NULL_PUBKEY = bytes(PUBKEY_BYTES)
LENDING_MARKET_LEN = 418
RESERVE_LEN = 713 + PUBKEY_BYTES * HOST_FEE_RECEIVER_COUNT
OBLIGATION_COLLATERAL_LEN = 72  # 32 + 8 + 16 + 16
OBLIGATION_LIQUIDITY_LEN = 96  # 32 + 16 + 16 + 16 + 16
OBLIGATION_SLAB_LEN = OBLIGATION_COLLATERAL_LEN + OBLIGATION_LIQUIDITY_LEN * (MAX_OBLIGATION_RESERVES - 1)
OBLIGATION_LEN = 1092
