"""
Economic forecast scoring and leaderboard engine.

Resolves forecasts on economic indicators, awards points and maintains
tie-broken leaderboards on top of MongoDB.
"""

__version__ = "0.1.0"
