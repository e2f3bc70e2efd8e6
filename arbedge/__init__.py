"""
ArbEdge - sports betting arbitrage detection.

Quotes from many bookmakers are refreshed through a single-flight cache
and evaluated per event for guaranteed-profit stake splits.
"""

__version__ = "0.1.0"
