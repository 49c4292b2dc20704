"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline, including header cache diagnostics
- Quiet and verbose modes
- format_response and print_table in each format
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from credcache import output as output_module
from credcache.cache import HeaderCache
from credcache.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("credcache.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("credcache.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(format=OutputFormat.AUTO, no_color=True)
        assert mgr.format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_data("hello world")
        captured = capfd.readouterr()
        assert "hello world" in captured.out
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, method, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("diagnostic text")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic text" in captured.err

    def test_prefixes_in_no_color(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
        mgr.warning("w")
        mgr.error("e")
        mgr.suggest("s")
        mgr.debug("d")
        err = capfd.readouterr().err
        assert "Warning: w" in err
        assert "Error: e" in err
        assert "→ s" in err
        assert "[debug] d" in err

    @pytest.mark.asyncio
    async def test_cache_failures_never_reach_stdout(self, capfd, non_tty, failing_store):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        cache = HeaderCache(failing_store, output=mgr)

        assert await cache.get("zhihu", "https://example/hot") is None
        assert await cache.set("zhihu", {"cookie": "abc"}) is False

        captured = capfd.readouterr()
        assert captured.out == ""
        assert "database is unavailable" in captured.err
        assert "zhihu" in captured.err


# ------------------------------------------------------------------ #
# Quiet / verbose
# ------------------------------------------------------------------ #


class TestQuietVerbose:
    @pytest.mark.parametrize("method", ["info", "success", "suggest"])
    def test_quiet_suppresses(self, method, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        getattr(mgr, method)("should not appear")
        assert capfd.readouterr().err == ""

    @pytest.mark.parametrize("method", ["warning", "error"])
    def test_quiet_keeps_problems(self, method, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        getattr(mgr, method)("important")
        assert "important" in capfd.readouterr().err

    def test_debug_hidden_by_default(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.debug("should not appear")
        assert capfd.readouterr().err == ""

    def test_properties(self, non_tty):
        mgr = OutputManager(quiet=True, verbose=True)
        assert mgr.is_quiet is True
        assert mgr.is_verbose is True


# ------------------------------------------------------------------ #
# format_response
# ------------------------------------------------------------------ #


class TestFormatResponse:
    def test_json_dict(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        data = {"cookie": "a=1; b=2", "user-agent": "Mozilla/5.0"}
        mgr.format_response(data)
        assert json.loads(capfd.readouterr().out) == data

    def test_json_string_is_reparsed(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.format_response('{"key": "value"}')
        assert json.loads(capfd.readouterr().out) == {"key": "value"}

    def test_json_keeps_unicode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.format_response({"title": "知乎热榜"})
        assert "知乎热榜" in capfd.readouterr().out

    def test_plain_dict_is_tab_separated(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response({"cookie": "abc", "referer": "https://example"})
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines == ["cookie\tabc", "referer\thttps://example"]

    def test_plain_list_of_dicts(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response([{"id": "1", "title": "a"}, {"id": "2", "title": "b"}])
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines == ["1\ta", "2\tb"]

    def test_rich_dict_produces_output(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.format_response({"cookie": "abc"})
        assert "cookie" in capfd.readouterr().out


# ------------------------------------------------------------------ #
# print_table
# ------------------------------------------------------------------ #


class TestPrintTable:
    HEADERS = ["id", "state", "source_url"]
    ROWS = [["zhihu", "valid", ""], ["weibo", "unpopulated", "https://weibo.example/hot"]]

    def test_table_json_mode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(self.HEADERS, self.ROWS)
        parsed = json.loads(capfd.readouterr().out)
        assert parsed[1] == {
            "id": "weibo",
            "state": "unpopulated",
            "source_url": "https://weibo.example/hot",
        }

    def test_table_plain_mode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(self.HEADERS, self.ROWS, title="ignored")
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines[0] == "id\tstate\tsource_url"
        assert lines[1].startswith("zhihu\tvalid")
        assert len(lines) == 3

    def test_table_rich_mode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_table(self.HEADERS, self.ROWS, title="Header cache")
        out = capfd.readouterr().out
        assert "Header cache" in out
        assert "zhihu" in out

    def test_table_empty_rows(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["id"], [])
        assert json.loads(capfd.readouterr().out) == []


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output_overrides(self):
        custom = OutputManager(format=OutputFormat.JSON)
        set_output(custom)
        assert get_output() is custom

    def test_reset_output_clears(self):
        set_output(OutputManager(format=OutputFormat.JSON))
        reset_output()
        assert output_module._output is None

    def test_convenience_functions_use_global(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.JSON, no_color=True))
        output_module.info("status")
        output_module.format_response({"a": 1})
        captured = capfd.readouterr()
        assert json.loads(captured.out) == {"a": 1}
        assert "status" in captured.err
