"""Fee-safe ERC20 balance queries and transfers."""

__version__ = "0.1.0"
