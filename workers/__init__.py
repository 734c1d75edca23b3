"""Temporal worker for the stock activities."""
