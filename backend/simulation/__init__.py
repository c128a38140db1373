"""
Supply-chain network simulation package

  NetworkSynthesizer  : Configuration → ordered Node sequence (seedable)
  NetworkStateStore   : versioned, single-writer owner of the live network
  LiveUpdateScheduler : asyncio loop calling store.tick() on a fixed cadence

Status derivation, cause classification and the networkx chain topology
shared by every agent live in network_analytics.
"""
from .network_synthesizer import NetworkSynthesizer, SynthesisPolicy, synthesize
from .network_store import NetworkStateStore, TickPolicy
from .live_updates import LiveUpdateScheduler

__all__ = [
    "NetworkSynthesizer",
    "SynthesisPolicy",
    "synthesize",
    "NetworkStateStore",
    "TickPolicy",
    "LiveUpdateScheduler",
]
