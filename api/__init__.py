"""DeFiSeek REST API."""
