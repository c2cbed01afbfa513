"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from forecast_scoring.config.settings import (
    CacheSettings,
    MongoSettings,
    ScoringPolicy,
    SweeperSettings,
    get_settings,
)


class TestScoringPolicy:
    def test_defaults(self):
        policy = ScoringPolicy(_env_file=None)
        assert policy.base_points == 100
        assert policy.difficulty_multipliers["fed_rate"] == 2.0
        assert policy.fed_rate_tolerance == 0.125
        assert policy.category_min_resolved == 3

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SCORING_BASE_POINTS", "250")
        monkeypatch.setenv("SCORING_DIFFICULTY_MULTIPLIERS", '{"cpi": 3.0}')
        policy = ScoringPolicy(_env_file=None)
        assert policy.base_points == 250
        assert policy.difficulty_multipliers == {"cpi": 3.0}

    def test_steps_and_tiers_sorted(self):
        policy = ScoringPolicy(
            _env_file=None,
            time_bonus_steps=[(1, 0.05), (7, 0.2)],
            tiers=[(0, "Rookie"), (500, "Veteran")],
        )
        assert policy.time_bonus_steps[0] == (7, 0.2)
        assert policy.tiers[0] == (500, "Veteran")

    def test_tiers_need_zero_floor(self):
        with pytest.raises(ValidationError):
            ScoringPolicy(_env_file=None, tiers=[(100, "Pro")])

    def test_negative_base_points_rejected(self):
        with pytest.raises(ValidationError):
            ScoringPolicy(_env_file=None, base_points=-1)


class TestMongoSettings:
    def test_uri_includes_replica_set(self):
        settings = MongoSettings(_env_file=None, host="db", replica_set="rs0")
        assert settings.uri.startswith("mongodb://admin:secret@db:27017/forecast_scoring?")
        assert settings.uri.endswith("&replicaSet=rs0")

    def test_uri_without_replica_set(self):
        assert "replicaSet" not in MongoSettings(_env_file=None, replica_set=None).uri


class TestOtherSettings:
    def test_cache_defaults(self):
        cache = CacheSettings(_env_file=None)
        assert cache.invalidation_page_sizes == [20, 50, 100]
        assert cache.invalidation_pages == 10

    def test_sweeper_from_environment(self, monkeypatch):
        monkeypatch.setenv("SWEEPER_INTERVAL_MINUTES", "15")
        assert SweeperSettings(_env_file=None).interval_minutes == 15

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
