"""
Centralized constants for the Token Discovery Agent.

This file contains:
- Source tags attached to every discovery record
- Signal names emitted by the scoring engine
- Solana program addresses watched by the on-chain scan (immutable protocol constants)

Import from this module rather than duplicating string literals across modules.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Source tags
# ---------------------------------------------------------------------------

SOURCE_WEBSOCKET = "websocket"                       # push feed
SOURCE_DEXSCREENER = "dexscreener"                   # periodic market poll
SOURCE_BLOCKCHAIN = "blockchain"                     # on-chain scan
SOURCE_JUPITER = "jupiter"                           # aggregator poll
SOURCE_TRANSACTION_ANALYSIS = "transaction_analysis" # deep transaction analysis feedback

# Canonical market-data source: records from it are never re-enriched.
MARKET_DATA_SOURCE = SOURCE_DEXSCREENER

# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

SIGNAL_BLOCKCHAIN_VERIFIED = "blockchain_verified"
SIGNAL_MARKET_ACTIVITY = "market_activity"
SIGNAL_REAL_TIME = "real_time_detection"
SIGNAL_TRANSACTION_ANALYSIS = "transaction_analysis"
SIGNAL_HIGH_LIQUIDITY = "high_liquidity"
SIGNAL_MEDIUM_LIQUIDITY = "medium_liquidity"
SIGNAL_VERY_NEW = "very_new"
SIGNAL_NEW = "new"
SIGNAL_HIGH_VOLUME = "high_volume"
SIGNAL_MEDIUM_VOLUME = "medium_volume"
SIGNAL_PUMPING = "pumping"
SIGNAL_RISING = "rising"

# Source tag -> (confidence bonus, signal).  Sources absent here add nothing.
SOURCE_CONFIDENCE_BONUS: dict[str, tuple[float, str]] = {
    SOURCE_BLOCKCHAIN: (15.0, SIGNAL_BLOCKCHAIN_VERIFIED),
    SOURCE_DEXSCREENER: (10.0, SIGNAL_MARKET_ACTIVITY),
    SOURCE_WEBSOCKET: (12.0, SIGNAL_REAL_TIME),
    SOURCE_TRANSACTION_ANALYSIS: (8.0, SIGNAL_TRANSACTION_ANALYSIS),
}

# ---------------------------------------------------------------------------
# Solana program addresses
# ---------------------------------------------------------------------------

SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM = "Token2022rMLqfGMQpwkX83CmP5VWMdM8RX8bH6TfpHn"
PUMPFUN_PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBymtzbm"
RAYDIUM_AMM_PROGRAM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qjDe1R1ThT4wQLAWc8c5CGdrD"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

# Quote / base currencies that are never "new tokens" in a transaction.
QUOTE_MINTS: frozenset[str] = frozenset({WSOL_MINT, USDC_MINT, USDT_MINT})

# Programs scanned by the on-chain strategy, by default.
WATCHED_PROGRAMS: tuple[str, ...] = (PUMPFUN_PROGRAM, RAYDIUM_AMM_PROGRAM, TOKEN_PROGRAM)

# Parsed SPL Token instruction types that initialise a new mint.
TOKEN_CREATION_INSTRUCTIONS: frozenset[str] = frozenset({
    "initializeMint",
    "initializeMint2",
})

LAMPORTS_PER_SOL = 1_000_000_000

# Program log lines emitted by launchpads when a token is created.
TOKEN_CREATION_LOG_MARKERS: tuple[str, ...] = (
    "Instruction: Create",
    "Instruction: InitializeMint",
)
