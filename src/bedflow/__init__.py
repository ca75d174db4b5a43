"""
Bedflow: occupancy analytics and discharge forecasting for hospital beds.

This package derives occupancy summaries, ward breakdowns, trend series,
length-of-stay estimates, discharge forecasts and cleaning performance
statistics from an append-only log of bed status changes.
"""

__version__ = "0.1.0"
