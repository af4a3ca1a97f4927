"""Infra layer utilities (chunk/partial storage, UA pool)."""

from .ua_pool import UserAgentPool
from .storage import ChunkStore, PartialStore

__all__ = ["ChunkStore", "PartialStore", "UserAgentPool"]
