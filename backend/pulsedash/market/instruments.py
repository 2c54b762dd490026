"""Tracked instruments and the mapping between CoinGecko ids and pair symbols."""

# Canonical pair symbol -> CoinGecko coin id
INSTRUMENTS: dict[str, str] = {
    "BTCUSDT": "bitcoin",
    "ETHUSDT": "ethereum",
    "BNBUSDT": "binancecoin",
    "XRPUSDT": "ripple",
    "ADAUSDT": "cardano",
    "DOGEUSDT": "dogecoin",
    "SOLUSDT": "solana",
    "DOTUSDT": "polkadot",
    "LTCUSDT": "litecoin",
}

COIN_IDS: dict[str, str] = {coin: symbol for symbol, coin in INSTRUMENTS.items()}

# Instruments reconciled and pushed to browsers by default
TRACKED_SYMBOLS: list[str] = ["BTCUSDT", "ETHUSDT", "DOGEUSDT"]

# Coins summarized by GET /api/crypto
MARKET_SUMMARY_COINS: list[str] = ["bitcoin", "ethereum", "dogecoin"]

# Stream channel suffix (24h rolling ticker carries the 24h percent change)
DEFAULT_CHANNEL = "ticker"


def normalize_symbol(value: str) -> str:
    return value.strip().upper()


def coin_id_for(symbol: str) -> str:
    """CoinGecko id for a pair symbol; unknown symbols map to their lower-cased base."""
    symbol = normalize_symbol(symbol)
    if symbol in INSTRUMENTS:
        return INSTRUMENTS[symbol]
    base = symbol[:-4] if symbol.endswith("USDT") else symbol
    return base.lower()


def resolve_symbol(value: str) -> str | None:
    """Accept a coin id ('bitcoin') or a pair symbol ('btcusdt'); None if untracked."""
    value = value.strip()
    if value.lower() in COIN_IDS:
        return COIN_IDS[value.lower()]
    symbol = normalize_symbol(value)
    if symbol in INSTRUMENTS:
        return symbol
    return None


def subscription_set(symbols: list[str], channel: str = DEFAULT_CHANNEL) -> dict[str, str]:
    """Symbol -> stream channel name, e.g. {'BTCUSDT': 'btcusdt@ticker'}."""
    return {normalize_symbol(s): f"{normalize_symbol(s).lower()}@{channel}" for s in symbols}
