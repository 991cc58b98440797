"""
Device side: miner API client, reading codec and poll loop.
"""

from .codec import Reading, decode, encode
from .miner_client import MinerClient
from .poller import Poller

__all__ = ["MinerClient", "Poller", "Reading", "decode", "encode"]
