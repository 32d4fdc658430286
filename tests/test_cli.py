"""Tests for the CLI entry point (main.py)."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys

import pytest

MAIN = os.path.join(os.path.dirname(__file__), "..", "src", "main.py")


class TestCLI:

    def test_help_flag(self):
        """--help should print usage and exit 0."""
        result = subprocess.run(
            [sys.executable, MAIN, "--help"],
            capture_output=True, text=True, timeout=30,
        )
        assert result.returncode == 0
        assert "--sources" in result.stdout
        assert "--duration" in result.stdout

    def test_unknown_source_rejected(self):
        """An unknown source name should exit with an argparse error."""
        result = subprocess.run(
            [sys.executable, MAIN, "--sources", "websocket,carrier_pigeon"],
            capture_output=True, text=True, timeout=30,
        )
        assert result.returncode != 0
        assert "carrier_pigeon" in result.stderr


class TestParseSources:

    def test_normalises_names(self):
        from main import _parse_sources

        assert _parse_sources(" WebSocket, jupiter ,") == ["websocket", "jupiter"]

    def test_unknown_name(self):
        from main import _parse_sources

        with pytest.raises(argparse.ArgumentTypeError):
            _parse_sources("dexscreener,nope")
