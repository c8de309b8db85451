"""DeFiSeek test suite."""
