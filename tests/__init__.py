"""Tests for the forecast scoring engine."""
