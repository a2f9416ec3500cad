"""
TradeSense - Hybrid AI Chart Analysis
=====================================
Chart screenshots in, Gemini hybrid technical/liquidity analysis out.
"""

__version__ = "2.1.0"
