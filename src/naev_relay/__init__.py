"""Naev multiplayer root relay: a rendezvous directory of peer-hosted systems."""

__version__ = "0.1.0"
