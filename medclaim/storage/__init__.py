# Storage module
from .store import InMemoryClaimStore

__all__ = ["InMemoryClaimStore"]
