"""Base Impression - on-chain and social impression scoring with tiered claims."""

__version__ = "0.1.0"
