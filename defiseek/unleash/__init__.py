"""
DeFiSeek - bitsCrunch UnleashNFTs API access.
"""

from defiseek.unleash.client import UnleashClient

__all__ = ["UnleashClient"]
