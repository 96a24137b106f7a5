"""
Strategy module for trend signal generation.

This module implements:
- EMA and fractal indicators
- The per-direction condition state machine
- Entry signal evaluation with exit price calculation
"""
