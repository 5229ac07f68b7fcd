"""Tests for tagrel.output.console module."""

from __future__ import annotations

import pytest

from tagrel.output.console import MockConsole, RichConsole, Style


class TestMockConsole:
    def test_captures_styles(self) -> None:
        console = MockConsole()
        console.print("cargo +stable build --verbose --release", Style.DIM)
        console.success("published")
        console.error("build failed (exit 101)")
        console.warning("cancelled")
        console.info("skipped")
        console.header("Build")

        assert console.messages == [
            "cargo +stable build --verbose --release",
            "OK published",
            "error: build failed (exit 101)",
            "warning: cancelled",
            "info: skipped",
            "Build",
        ]
        assert console.has_error()
        assert console.count(Style.HEADER) == 1
        assert len(console.find("build")) == 2

    def test_text_joins_lines(self) -> None:
        console = MockConsole()
        console.print("a")
        console.print("b")
        assert console.text == "a\nb"


class TestRichConsole:
    def test_brackets_are_not_markup(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole()
        console.header("[windows-latest] Build")
        console.error("[bold]literal[/bold]")

        out = capsys.readouterr().out
        assert "[windows-latest] Build" in out
        assert "[bold]literal[/bold]" in out
