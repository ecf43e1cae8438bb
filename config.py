"""
config.py -- All tunable parameters for the swap wallet session.

Every value here is loaded from environment variables so the extension host
(or a local shell) can configure the session without touching code.

HOW TO READ THIS FILE:
  Each config value has a comment explaining:
    1. What it controls
    2. What happens if you raise/lower it
    3. The default and why it was chosen
"""

import os


# ---------------------------------------------------------------------------
# Helper: read an env var with a typed default
# ---------------------------------------------------------------------------

def _env(name, default, cast=str):
    """
    Read an environment variable and cast it to the right type.
    If the var is missing or empty, return *default* (already the right type).
    """
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        # Special handling for booleans -- "true"/"1"/"yes" are all truthy
        if cast is bool:
            return raw.strip().lower() in ("true", "1", "yes")
        return cast(raw)
    except (ValueError, TypeError):
        return default


# ---------------------------------------------------------------------------
# Initial exchange pair
# ---------------------------------------------------------------------------

# Asset shown on the left (alpha) side when the session starts.
# Alpha is the side the user types an amount into.
INITIAL_ALPHA_ASSET: str = _env("INITIAL_ALPHA_ASSET", "BTC")

# Starting alpha amount.  0.01 BTC is a small, readable default.
INITIAL_ALPHA_AMOUNT: float = _env("INITIAL_ALPHA_AMOUNT", 0.01, float)

# Asset shown on the right (beta) side.  Must differ from the alpha asset.
INITIAL_BETA_ASSET: str = _env("INITIAL_BETA_ASSET", "USDT")

# Starting beta amount.  Roughly INITIAL_ALPHA_AMOUNT * INITIAL_RATE; the
# first rate tick recomputes it anyway.
INITIAL_BETA_AMOUNT: float = _env("INITIAL_BETA_AMOUNT", 191.34, float)

# Beta units per one alpha unit until the rate feed delivers a real value.
INITIAL_RATE: float = _env("INITIAL_RATE", 19133.74, float)

# ---------------------------------------------------------------------------
# Rate feed
# ---------------------------------------------------------------------------

# Seconds between mock rate ticks.
# Raising it: calmer UI, staler beta amounts.
# Lowering it: beta amount jitters more often.
RATE_FEED_INTERVAL_SEC: float = _env("RATE_FEED_INTERVAL_SEC", 5.0, float)

# Per-tick standard deviation of the mock random walk, in percent.
RATE_FEED_VOLATILITY_PCT: float = _env("RATE_FEED_VOLATILITY_PCT", 0.1, float)

# Ticks that move the rate by more than this (vs. the last accepted tick)
# are treated as corrupt and dropped before they reach the reducer.
# 0 disables the jump filter.
RATE_FEED_MAX_JUMP_PCT: float = _env("RATE_FEED_MAX_JUMP_PCT", 20.0, float)

# Seed for the mock random walk.  Negative means "seed from OS entropy".
RATE_FEED_SEED: int = _env("RATE_FEED_SEED", -1, int)

# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

# How long the "swap again" button spins after a transaction is published.
TX_PENDING_DISPLAY_SEC: float = _env("TX_PENDING_DISPLAY_SEC", 2.0, float)

# Block explorer link for published transactions.  {txid} is substituted.
BLOCK_EXPLORER_TX_URL: str = _env(
    "BLOCK_EXPLORER_TX_URL", "https://blockstream.info/liquid/tx/{txid}"
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

# Python log level.  DEBUG shows every dispatched action; INFO is lifecycle only.
LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")


# ---------------------------------------------------------------------------
# Startup banner -- printed when a session launches
# ---------------------------------------------------------------------------

def print_banner():
    """Print a clear summary of all active settings so you know what's running."""
    seed = "random" if RATE_FEED_SEED < 0 else str(RATE_FEED_SEED)
    jump = "off" if RATE_FEED_MAX_JUMP_PCT <= 0 else f"{RATE_FEED_MAX_JUMP_PCT:.2f}%"
    lines = [
        "",
        "=" * 60,
        "  SWAP WALLET SESSION",
        "=" * 60,
        f"  Pair:            {INITIAL_ALPHA_ASSET}/{INITIAL_BETA_ASSET}",
        f"  Alpha amount:    {INITIAL_ALPHA_AMOUNT}",
        f"  Beta amount:     {INITIAL_BETA_AMOUNT}",
        f"  Initial rate:    1 {INITIAL_ALPHA_ASSET} = {INITIAL_RATE} {INITIAL_BETA_ASSET}",
        f"  Feed interval:   {RATE_FEED_INTERVAL_SEC}s",
        f"  Feed volatility: {RATE_FEED_VOLATILITY_PCT:.3f}% per tick",
        f"  Jump filter:     {jump}",
        f"  Feed seed:       {seed}",
        f"  Pending spinner: {TX_PENDING_DISPLAY_SEC}s",
        f"  Explorer:        {BLOCK_EXPLORER_TX_URL}",
        f"  Log level:       {LOG_LEVEL}",
        "=" * 60,
        "",
    ]
    print("\n".join(lines))
