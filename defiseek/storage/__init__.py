"""
DeFiSeek - Chat persistence.
"""

from defiseek.storage.chat_store import ChatStore, InMemoryChatStore

__all__ = ["ChatStore", "InMemoryChatStore"]
