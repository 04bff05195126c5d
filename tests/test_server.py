"""Tests for the MCP server, health tool and command line."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from route_impact import __version__
from route_impact.server import health, main


def test_health_returns_ok_status():
    """Health check should return status ok."""
    response = health()
    assert response.status == "ok"


def test_health_returns_version():
    """Health check should return the current version."""
    response = health()
    assert response.version == __version__


def test_health_returns_timestamp():
    """Health check should return a valid ISO timestamp."""
    response = health()
    assert response.timestamp is not None
    # Should be parseable as ISO format
    assert "T" in response.timestamp


def test_health_reports_feed_not_loaded():
    """Health check should not trigger a feed load."""
    response = health()
    assert response.feed_loaded is False


def test_cli_load(feed_dir: Path, capsys: pytest.CaptureFixture[str]):
    """The load command should print per-table counts."""
    with patch.object(sys, "argv", ["route-impact", "load", str(feed_dir)]):
        main()

    output = capsys.readouterr().out
    assert "routes: 3" in output
    assert "stops: 3 (1 skipped) (1 outside region)" in output
    assert "route shapes: 3" in output


def test_cli_load_missing_feed(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    """A missing feed should exit with status 1 and a message."""
    with patch.object(sys, "argv", ["route-impact", "load", str(tmp_path / "missing")]):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 1
    assert "Error: Failed to load" in capsys.readouterr().err


def test_cli_match_requires_both_coordinates():
    """--lat without --lng should be rejected."""
    with patch.object(sys, "argv", ["route-impact", "match", "--lat", "54.96"]):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 2
