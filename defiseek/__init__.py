"""
DeFiSeek - Core Package

Web3 safety copilot: chat over DeFi/NFT topics backed by
bitsCrunch UnleashNFTs blockchain intelligence.
"""

__version__ = "0.1.0"
__author__ = "DeFiSeek Team"

from defiseek.config import settings, get_settings

__all__ = ["settings", "get_settings", "__version__"]
