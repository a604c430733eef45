"""
Generation Client module.

Opens the streaming request to the external video generation provider.
"""

from modules.generation_client.client import GenerationClient
from modules.generation_client.config import get_model_for_orientation

__all__ = ["GenerationClient", "get_model_for_orientation"]
