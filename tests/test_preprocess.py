"""Tests for trace_dump/preprocess.py"""

from trace_dump.preprocess import preprocess, strip_ansi


class TestStripAnsi:
    def test_removes_color_sequences(self):
        assert strip_ansi("\x1b[32mCompleted\x1b[m") == "Completed"

    def test_removes_multi_param_sequences(self):
        assert strip_ansi("\x1b[99;2m(String)\x1b[0m") == "(String)"

    def test_plain_text_unchanged(self):
        assert strip_ansi("plain text") == "plain text"


class TestPreprocess:
    def test_strips_source_prefix(self):
        assert preprocess("camel-app    | Endpoint    file://in") == "Endpoint    file://in"

    def test_strips_colored_prefix(self):
        line = "\x1b[36mcamel-app  |\x1b[0m \x1b[1mBody\x1b[m  (String)"
        assert preprocess(line) == "Body  (String)"

    def test_only_first_prefix_removed(self):
        assert preprocess("svc | a | b") == "a | b"

    def test_line_without_prefix_kept(self):
        line = "    Header      (String)  CamelFileName  20250415.csv"
        assert preprocess(line) == line

    def test_empty_line(self):
        assert preprocess("") == ""
