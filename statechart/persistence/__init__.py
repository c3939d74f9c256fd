"""
Snapshot capture and restoration for statechart machines.
"""

from .serializer import Serializer, Snapshot

__all__ = ["Serializer", "Snapshot"]
