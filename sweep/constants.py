"""Constants for the Wallet Sweep routes."""
import re

# Address format: 0x followed by 20 bytes of hex
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Balance listing
DEFAULT_PAGE = 0
DEFAULT_PAGE_LIMIT = 50
MIN_DISPLAY_BALANCE = 0.0001  # Dust below this is hidden
DEFAULT_DECIMALS = 18
PAGE_FETCH_DELAY = 0.1  # Seconds between pages when fetching everything

# Market data
DEFAULT_NETWORK = "BASE_MAINNET"

# Token images
COINGECKO_UNKNOWN_IMG = "https://assets.coingecko.com/coins/images/1/thumb/bitcoin.png"
TOKEN_IMAGE_OVERRIDES = {
    # lower-cased token address -> image URL
}

KNOWN_TOKEN_ICONS = {
    "WETH": "https://assets.coingecko.com/coins/images/2518/thumb/weth.png",
    "USDC": "https://assets.coingecko.com/coins/images/6319/thumb/USD_Coin_icon.png",
    "USDbC": "https://assets.coingecko.com/coins/images/6319/thumb/USD_Coin_icon.png",
    "DAI": "https://assets.coingecko.com/coins/images/9956/thumb/4943.png",
    "USDT": "https://assets.coingecko.com/coins/images/325/thumb/Tether.png",
    "AERO": "https://assets.coingecko.com/coins/images/31745/thumb/token.png",
}
