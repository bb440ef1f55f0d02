"""
Storage backends for the source crawler.
"""
from .memory_store import InMemoryCrawlStore

__all__ = ['InMemoryCrawlStore']
