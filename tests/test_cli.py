"""Tests for the command-line interface."""

from unittest.mock import MagicMock, patch

import requests
from click.testing import CliRunner

from query_cache.cli import cli
from query_cache.hasher import derive_key


def test_key_prints_derived_key():
    result = CliRunner().invoke(cli, ["key", "SELECT 1", "json"])

    assert result.exit_code == 0
    assert result.output.strip() == derive_key("SELECT 1", "json")


def test_stats_renders_table():
    resp = MagicMock()
    resp.json.return_value = {
        "hits": 3,
        "misses": 1,
        "hit_rate": 0.75,
        "entries": 2,
        "max_entries": 10,
        "size_bytes": 42,
    }

    with patch("query_cache.cli.requests.get", return_value=resp) as get:
        result = CliRunner().invoke(cli, ["stats", "--url", "http://proxy:9000/"])

    assert result.exit_code == 0
    get.assert_called_once_with("http://proxy:9000/cache/stats", timeout=10)
    assert "75.0%" in result.output
    assert "2 / 10" in result.output


def test_stats_unreachable_proxy_exits_nonzero():
    with patch("query_cache.cli.requests.get", side_effect=requests.ConnectionError("refused")):
        result = CliRunner().invoke(cli, ["stats"])

    assert result.exit_code == 1


def test_clear_posts_to_proxy():
    with patch("query_cache.cli.requests.post", return_value=MagicMock()) as post:
        result = CliRunner().invoke(cli, ["clear", "--yes"])

    assert result.exit_code == 0
    post.assert_called_once_with("http://127.0.0.1:8080/cache/clear", timeout=10)
