"""Tests for CommitAnalyzer over real directory trees."""

import os
from unittest.mock import patch

from linetrack.core.analysis import CommitAnalyzer, normalize_extensions


def _write(root, rel_path, content):
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestNormalizeExtensions:

    def test_adds_dot_and_lowercases(self):
        assert normalize_extensions(["CS", ".Ts", " ", "razor"]) == {".cs", ".ts", ".razor"}


class TestAnalyze:

    def test_counts_per_extension(self, tmp_path):
        _write(tmp_path, "src/Program.cs", "// entry\nusing System;\n\nclass P {}\n")
        _write(tmp_path, "client/app.ts", "const a = 1;\n\n// keep\n")
        _write(tmp_path, "README.md", "# readme\n")

        counts = CommitAnalyzer().analyze(str(tmp_path), [".cs", ".ts"])

        assert counts.lines_by_extension == {".cs": 2, ".ts": 3}
        assert counts.total_lines == 5

    def test_ignored_directories_and_files(self, tmp_path):
        _write(tmp_path, "src/App.cs", "a();\n")
        _write(tmp_path, "src/bin/Debug/Gen.cs", "x();\n" * 50)
        _write(tmp_path, "client/node_modules/lib/index.ts", "y;\n" * 50)
        _write(tmp_path, "wwwroot/lib/jq.ts", "z;\n" * 50)
        _write(tmp_path, "src/Form.Designer.cs", "d();\n" * 50)
        _write(tmp_path, "src/Data/Migrations/Init.cs", "m();\n" * 50)

        counts = CommitAnalyzer().analyze(str(tmp_path), [".cs", ".ts"])

        assert counts.lines_by_extension == {".cs": 1}
        assert counts.total_lines == 1

    def test_extension_match_is_case_insensitive(self, tmp_path):
        _write(tmp_path, "Main.CS", "a();\nb();\n")
        counts = CommitAnalyzer().analyze(str(tmp_path), ["cs"])
        assert counts.lines_by_extension == {".cs": 2}

    def test_undecodable_file_counts_zero(self, tmp_path):
        _write(tmp_path, "good.ts", "a;\nb;\n")
        (tmp_path / "bad.ts").write_bytes(b"\xff\xfe\x00bad\n")

        counts = CommitAnalyzer().analyze(str(tmp_path), [".ts"])

        assert counts.total_lines == 2

    def test_unreadable_file_counts_zero(self, tmp_path):
        _write(tmp_path, "a.ts", "a;\n")
        analyzer = CommitAnalyzer()
        with patch("builtins.open", side_effect=OSError("denied")):
            counts = analyzer.analyze(str(tmp_path), [".ts"])
        assert counts.total_lines == 0
        assert counts.lines_by_extension == {".ts": 0}

    def test_empty_tree(self, tmp_path):
        counts = CommitAnalyzer().analyze(str(tmp_path), [".cs"])
        assert counts.total_lines == 0
        assert counts.lines_by_extension == {}


class TestRankFiles:

    def test_orders_by_count_then_path(self, tmp_path):
        _write(tmp_path, "b.ts", "1\n2\n3\n")
        _write(tmp_path, "a.ts", "1\n2\n3\n")
        _write(tmp_path, "src/big.ts", "x\n" * 10)
        _write(tmp_path, "small.ts", "x\n")

        ranked = CommitAnalyzer().rank_files(str(tmp_path), [".ts"], limit=3)

        assert [(f.file_path, f.line_count) for f in ranked] == [
            ("src/big.ts", 10),
            ("a.ts", 3),
            ("b.ts", 3),
        ]

    def test_paths_use_forward_slashes(self, tmp_path):
        _write(tmp_path, os.path.join("deep", "er", "x.cs"), "a();\n")
        ranked = CommitAnalyzer().rank_files(str(tmp_path), [".cs"], limit=5)
        assert ranked[0].file_path == "deep/er/x.cs"
