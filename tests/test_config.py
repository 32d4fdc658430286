"""Tests for config.py validation helpers (_parse_float, _parse_int, _parse_bool, _parse_list)."""

from __future__ import annotations

import os
from unittest.mock import patch


class TestParseFloat:
    """Tests for _parse_float env var parser."""

    def test_default_value(self):
        """Should return default when env var is not set."""
        from config import _parse_float

        with patch.dict(os.environ, {}, clear=False):
            # Use internal name not actually set in env
            result = _parse_float("__TEST_FLOAT_UNSET__", "0.5", low=0.0, high=1.0)
        assert result == 0.5

    def test_valid_env_value(self):
        """Should parse a valid env var value."""
        from config import _parse_float

        with patch.dict(os.environ, {"__TEST_FLOAT__": "0.7"}):
            result = _parse_float("__TEST_FLOAT__", "0.5", low=0.0, high=1.0)
        assert result == 0.7

    def test_clamps_high(self):
        """Should clamp values above high bound."""
        from config import _parse_float

        with patch.dict(os.environ, {"__TEST_FLOAT__": "1.5"}):
            result = _parse_float("__TEST_FLOAT__", "0.5", low=0.0, high=1.0)
        assert result == 1.0

    def test_clamps_low(self):
        """Should clamp values below low bound."""
        from config import _parse_float

        with patch.dict(os.environ, {"__TEST_FLOAT__": "-0.5"}):
            result = _parse_float("__TEST_FLOAT__", "0.5", low=0.0, high=1.0)
        assert result == 0.0

    def test_invalid_value_falls_back(self):
        """Should fall back to default on invalid input."""
        from config import _parse_float

        with patch.dict(os.environ, {"__TEST_FLOAT__": "not_a_number"}):
            result = _parse_float("__TEST_FLOAT__", "0.5", low=0.0, high=1.0)
        assert result == 0.5


class TestParseInt:
    """Tests for _parse_int env var parser."""

    def test_default_value(self):
        """Should return default when env var is not set."""
        from config import _parse_int

        with patch.dict(os.environ, {}, clear=False):
            result = _parse_int("__TEST_INT_UNSET__", "10", minimum=1)
        assert result == 10

    def test_valid_env_value(self):
        """Should parse a valid env var value."""
        from config import _parse_int

        with patch.dict(os.environ, {"__TEST_INT__": "25"}):
            result = _parse_int("__TEST_INT__", "10", minimum=1)
        assert result == 25

    def test_clamps_below_minimum(self):
        """Should clamp values below minimum."""
        from config import _parse_int

        with patch.dict(os.environ, {"__TEST_INT__": "0"}):
            result = _parse_int("__TEST_INT__", "10", minimum=1)
        assert result == 1

    def test_invalid_value_falls_back(self):
        """Should fall back to default on invalid input."""
        from config import _parse_int

        with patch.dict(os.environ, {"__TEST_INT__": "abc"}):
            result = _parse_int("__TEST_INT__", "10", minimum=1)
        assert result == 10

    def test_clamps_above_maximum(self):
        """Should clamp values above an explicit maximum."""
        from config import _parse_int

        with patch.dict(os.environ, {"__TEST_INT__": "500"}):
            result = _parse_int("__TEST_INT__", "5", minimum=1, maximum=50)
        assert result == 50


class TestParseBool:
    """Tests for _parse_bool env var parser."""

    def test_truthy_values(self):
        from config import _parse_bool

        for raw in ("1", "true", "YES", " on "):
            with patch.dict(os.environ, {"__TEST_BOOL__": raw}):
                assert _parse_bool("__TEST_BOOL__", "false") is True

    def test_falsy_values(self):
        from config import _parse_bool

        for raw in ("0", "false", "No", "off"):
            with patch.dict(os.environ, {"__TEST_BOOL__": raw}):
                assert _parse_bool("__TEST_BOOL__", "true") is False

    def test_invalid_value_falls_back(self):
        from config import _parse_bool

        with patch.dict(os.environ, {"__TEST_BOOL__": "maybe"}):
            assert _parse_bool("__TEST_BOOL__", "true") is True


class TestParseList:
    """Tests for _parse_list env var parser."""

    def test_default_value(self):
        from config import _parse_list

        result = _parse_list("__TEST_LIST_UNSET__", "websocket,dexscreener")
        assert result == ["websocket", "dexscreener"]

    def test_strips_and_lowercases(self):
        from config import _parse_list

        with patch.dict(os.environ, {"__TEST_LIST__": " Jupiter , ,BLOCKCHAIN,"}):
            result = _parse_list("__TEST_LIST__", "websocket")
        assert result == ["jupiter", "blockchain"]


class TestDefaults:
    """Default values that other modules depend on."""

    def test_queue_and_cache_defaults(self):
        import config

        assert 1 <= config.QUEUE_BATCH_SIZE <= 50
        assert config.SEEN_SIGNATURES_LOW < config.SEEN_SIGNATURES_HIGH
        assert config.CACHE_TTL_SECONDS >= 1

    def test_enabled_sources_known(self):
        import config

        known = {"websocket", "dexscreener", "blockchain", "jupiter"}
        assert set(config.ENABLED_SOURCES) <= known
