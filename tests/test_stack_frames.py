"""
Tests for stack frame parsing.

Tests cover:
- V8 and Gecko call-site syntax
- URL, Windows, POSIX, eval and relative locations
- Plugin id extraction and host-internal detection
- Truncation and oversized lines
"""

import pytest

from echoes.core.stack_frames import (
    MAX_LINE_LENGTH,
    LocationKind,
    StackFrameParser,
    parse_stack,
)


@pytest.fixture
def parser():
    return StackFrameParser()


# ============================================================================
# Call-site syntax
# ============================================================================

class TestCallSites:
    """Tests for recognising call-site lines."""

    def test_v8_named_frame(self, parser):
        frame = parser.parse_line(
            "    at CalendarWidget._onRender (http://localhost:30000/modules/seasons-and-stars/dist/module.js:150:20)"
        )
        assert frame is not None
        assert frame.function_name == "CalendarWidget._onRender"
        assert frame.location_kind is LocationKind.URL
        assert frame.normalized_path == "/modules/seasons-and-stars/dist/module.js"
        assert frame.module_id == "seasons-and-stars"
        assert frame.line == 150
        assert frame.column == 20

    def test_v8_bare_location(self, parser):
        frame = parser.parse_line("    at /modules/smalltime/scripts/app.mjs:3:1")
        assert frame.function_name == ""
        assert frame.module_id == "smalltime"

    def test_v8_async_frame(self, parser):
        frame = parser.parse_line("    at async CalendarManager.load (/modules/seasons-and-stars/dist/module.js:200:20)")
        assert frame.function_name == "CalendarManager.load"
        assert frame.module_id == "seasons-and-stars"

    def test_gecko_frame(self, parser):
        frame = parser.parse_line("render@http://localhost:30000/modules/simple-weather/dist/module.js:12:7")
        assert frame.function_name == "render"
        assert frame.module_id == "simple-weather"
        assert frame.line == 12
        assert frame.column == 7

    def test_gecko_anonymous_frame(self, parser):
        frame = parser.parse_line("@http://localhost:30000/modules/simple-weather/dist/module.js:1:1")
        assert frame.function_name == ""
        assert frame.module_id == "simple-weather"

    @pytest.mark.parametrize("line", [
        "",
        "Error: something broke",
        "TypeError: cannot read properties of undefined (reading 'x')",
        "This is not a valid stack trace format",
    ])
    def test_non_call_site_lines(self, parser, line):
        assert parser.parse_line(line) is None

    def test_oversized_line_skipped(self, parser):
        line = "    at f (/modules/x/" + "a" * MAX_LINE_LENGTH + ".js:1:1)"
        assert parser.parse_line(line) is None


# ============================================================================
# Location formats
# ============================================================================

class TestLocations:
    """Tests for each location matcher."""

    def test_windows_drive_path(self, parser):
        frame = parser.parse_line(
            "    at CalendarWidget.render (C:\\FoundryVTT\\Data\\modules\\seasons-and-stars\\dist\\module.js:100:20)"
        )
        assert frame.location_kind is LocationKind.WINDOWS
        assert frame.normalized_path == "C:/FoundryVTT/Data/modules/seasons-and-stars/dist/module.js"
        assert frame.module_id == "seasons-and-stars"
        assert frame.line == 100

    def test_windows_unc_path(self, parser):
        frame = parser.parse_line("    at f (\\\\server\\share\\Data\\modules\\unc-mod\\main.js:1:2)")
        assert frame.location_kind is LocationKind.WINDOWS
        assert frame.module_id == "unc-mod"

    def test_posix_path(self, parser):
        frame = parser.parse_line("    at f (/home/gm/foundrydata/Data/modules/posix-mod/main.js:4:2)")
        assert frame.location_kind is LocationKind.POSIX
        assert frame.module_id == "posix-mod"

    def test_minified_file(self, parser):
        frame = parser.parse_line("    at a.render (/modules/seasons-and-stars/dist/module.min.js:1:2050)")
        assert frame.module_id == "seasons-and-stars"
        assert frame.filename == "module.min.js"

    @pytest.mark.parametrize("line", [
        "    at anonymous (eval:1:1)",
        "    at <anonymous>:1:1",
        "    at eval (eval at run (http://localhost:30000/modules/x/a.js:1:1), <anonymous>:1:1)",
        "    at Array.forEach (native)",
    ])
    def test_eval_frames_have_no_location(self, parser, line):
        frame = parser.parse_line(line)
        assert frame is not None
        assert frame.location_kind is LocationKind.EVAL
        assert frame.has_location is False
        assert frame.module_id is None
        assert frame.filename is None

    def test_relative_file(self, parser):
        frame = parser.parse_line("    at test-error-attribution.js:500:20")
        assert frame.location_kind is LocationKind.RELATIVE
        assert frame.module_id is None
        assert frame.line == 500

    def test_url_without_position(self, parser):
        frame = parser.parse_line("    at f (https://forge.example.com/modules/hosted/main.js)")
        assert frame.module_id == "hosted"
        assert frame.line is None
        assert frame.column is None


# ============================================================================
# Plugin id extraction
# ============================================================================

class TestModuleIdExtraction:
    """Tests for marker-based plugin id extraction."""

    def test_marker_must_be_whole_component(self, parser):
        assert parser.extract_module_id("/my-modules/foo/x.js") is None

    def test_id_must_be_directory(self, parser):
        assert parser.extract_module_id("/modules/foo.js") is None

    def test_first_marker_wins(self, parser):
        assert parser.extract_module_id("/modules/outer/modules/inner/x.js") == "outer"

    def test_core_paths(self, parser):
        assert parser.is_core_path("/common/app.js")
        assert parser.is_core_path("C:/FoundryVTT/client/app/form.js")
        assert not parser.is_core_path("/scripts/app.js")

    def test_plugin_frame_is_never_core(self, parser):
        frame = parser.parse_line("    at f (/client/modules/weird/x.js:1:1)")
        assert frame.module_id == "weird"
        assert frame.is_core is False

    def test_custom_markers(self):
        parser = StackFrameParser(plugin_markers=("plugins",), core_markers=("lib",))
        frame = parser.parse_line("    at f (/srv/plugins/alpha/index.js:1:1)")
        assert frame.module_id == "alpha"
        assert parser.parse_line("    at f (/srv/lib/x.js:1:1)").is_core


# ============================================================================
# Whole traces
# ============================================================================

class TestParse:
    """Tests for parsing whole traces."""

    def test_order_is_preserved(self):
        frames = parse_stack(
            "Error: boom\n"
            "    at a (/modules/first/a.js:1:1)\n"
            "    at b (/common/b.js:2:2)\n"
            "    at c (/modules/second/c.js:3:3)"
        )
        assert [f.function_name for f in frames] == ["a", "b", "c"]
        assert [f.module_id for f in frames] == ["first", None, "second"]

    @pytest.mark.parametrize("stack", [None, "", "Error: only a message"])
    def test_empty_inputs(self, stack):
        assert parse_stack(stack) == []

    def test_max_frames(self):
        parser = StackFrameParser(max_frames=5)
        stack = "\n".join(f"    at f{i} (/modules/m/f{i}.js:1:1)" for i in range(50))
        assert len(parser.parse(stack)) == 5
