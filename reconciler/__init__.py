"""
Transaction status reconciliation engine.

Tracks submitted blockchain transaction hashes from submission through
confirmation, attributes them to internal users and repairs stuck
records.
"""

__version__ = "0.1.0"
