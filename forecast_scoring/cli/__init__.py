"""
Command Line Interface for the forecast scoring engine.

Provides commands for users, forecasts, resolution, leaderboards and the
expiry sweeper through a rich terminal interface.
"""

from forecast_scoring.cli.commands import cli

__all__ = ["cli"]
