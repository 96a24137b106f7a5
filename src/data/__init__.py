"""
Data module for exchange access.

This module handles:
- Candle, account, balance and position snapshots
- Symbol precision lookup
- Signed order submission
"""
