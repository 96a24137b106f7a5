"""
Execution module for order placement.

This module handles:
- Entry orders (MARKET or LIMIT)
- Take-profit and stop-loss bracket legs
- Rounding to exchange precision
"""
