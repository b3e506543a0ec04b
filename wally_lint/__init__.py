"""wally-lint — dependency validation for Wally package manifests."""

__version__ = "0.1.0"

PUBLIC_REGISTRY_URL = "https://github.com/UpliftGames/wally-index"
