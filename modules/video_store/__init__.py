"""
Video Store module.

Persistence of finished video artifacts.
"""

from modules.video_store.store import VideoStore, MAX_PAGE_SIZE

__all__ = ["VideoStore", "MAX_PAGE_SIZE"]
