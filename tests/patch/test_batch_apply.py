from pathlib import Path

from blockedit.gateway.validation import ValidationGateway
from blockedit.models import ApplyReport, CodeBlock, EditBlock, EditType, FileRange
from blockedit.patch import apply_text, summarize_reports
from blockedit.patch.applier import EditApplier
from blockedit.patch.batch import (
    EDIT_HANDLERS,
    _tracking_diff,
    apply_edit_blocks,
    validate_and_apply_edit_blocks,
)
from tests.stubs import StubChecker, StubVersionControl


def _write(tmp_path: Path, rel: str, lines) -> None:
    (tmp_path / rel).write_text("\n".join(lines) + "\n")


def _read_lines(tmp_path: Path, rel: str):
    return (tmp_path / rel).read_text().split("\n")


def test_every_edit_type_has_a_handler():
    assert set(EDIT_HANDLERS) == set(EditType)


def test_blocks_run_in_sequence_order(tmp_path):
    _write(tmp_path, "m.py", ["value = 1"])
    blocks = [
        EditBlock(file_path="m.py", old_lines=["value = 2"], new_lines=["value = 3"], sequence_number=2),
        EditBlock(file_path="m.py", old_lines=["value = 1"], new_lines=["value = 2"], sequence_number=1),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert [r.original_edit_block.sequence_number for r in reports] == [1, 2]
    assert all(r.applied for r in reports)
    assert (tmp_path / "m.py").read_text() == "value = 3\n"


def test_equal_sequence_numbers_keep_text_order(tmp_path):
    _write(tmp_path, "m.py", ["a = 1", "b = 1"])
    blocks = [
        EditBlock(file_path="m.py", old_lines=["a = 1"], new_lines=["a = 2"]),
        EditBlock(file_path="m.py", old_lines=["b = 1"], new_lines=["b = 2"]),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert [r.original_edit_block.old_lines for r in reports] == [["a = 1"], ["b = 1"]]


def test_failed_block_does_not_stop_the_batch(tmp_path):
    _write(tmp_path, "m.py", ["a = 1"])
    blocks = [
        EditBlock(file_path="missing.py", old_lines=["x"], new_lines=["y"], sequence_number=1),
        EditBlock(file_path="m.py", old_lines=["not there at all"], new_lines=["y"], sequence_number=2),
        EditBlock(file_path="m.py", old_lines=["a = 1"], new_lines=["a = 9"], sequence_number=3),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert [r.applied for r in reports] == [False, False, True]
    assert reports[0].error == "File does not exist: missing.py"
    assert reports[1].error.startswith("no good match found")
    assert reports[2].error == ""
    assert (tmp_path / "m.py").read_text() == "a = 9\n"


def test_binary_delete_does_not_abort_the_batch(tmp_path):
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\xff\xd8")
    (tmp_path / "b.txt").write_text("bye\n")
    (tmp_path / "latin.txt").write_bytes(b"caf\xe9\n")
    blocks = [
        EditBlock(file_path="logo.png", edit_type=EditType.delete, sequence_number=1),
        EditBlock(file_path="latin.txt", old_lines=["cafe"], new_lines=["tea"], sequence_number=2),
        EditBlock(file_path="b.txt", edit_type=EditType.delete, sequence_number=3),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert len(reports) == 3
    assert [r.applied for r in reports] == [True, False, True]
    assert reports[1].error == "File is not valid UTF-8 text: latin.txt"
    assert not (tmp_path / "logo.png").exists()
    assert not (tmp_path / "b.txt").exists()
    assert (tmp_path / "latin.txt").read_bytes() == b"caf\xe9\n"


def test_block_outside_visible_ranges_leaves_file_untouched(tmp_path):
    lines = [f"# line {i}" for i in range(1, 30)] + ["def target():", "    return 1"]
    lines += [f"# tail {i}" for i in range(len(lines) + 1, 41)]
    _write(tmp_path, "a.py", lines)
    before = (tmp_path / "a.py").read_text()
    block = EditBlock(
        file_path="a.py",
        old_lines=["def target():", "    return 1"],
        new_lines=["def target():", "    return 2"],
        sequence_number=1,
        visible_file_ranges=[FileRange(file_path="a.py", start_line=1, end_line=8)],
    )

    reports = apply_edit_blocks([block], EditApplier(tmp_path))

    assert reports[0].applied is False
    assert reports[0].error.startswith("no good match found")
    assert (tmp_path / "a.py").read_text() == before


def _duplicated_lines():
    lines = ["header = 0", "def first():", "    total += 1", "    return total"]
    lines += [f"# filler {i}" for i in range(len(lines), 19)]
    lines += ["def second():", "    total += 1", "    return total"]
    lines += [f"# tail {i}" for i in range(len(lines), 40)]
    return lines


def test_visible_ranges_follow_earlier_edits(tmp_path):
    _write(tmp_path, "m.py", _duplicated_lines())
    imports = [f"import mod{i}" for i in range(10)]
    visible = [FileRange(file_path="m.py", start_line=20, end_line=25)]
    blocks = [
        EditBlock(
            file_path="m.py",
            old_lines=["header = 0"],
            new_lines=["header = 0"] + imports,
            sequence_number=1,
        ),
        EditBlock(
            file_path="m.py",
            old_lines=["    total += 1", "    return total"],
            new_lines=["    total += 2", "    return total"],
            sequence_number=2,
            visible_file_ranges=visible,
        ),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert all(r.applied for r in reports)
    lines = _read_lines(tmp_path, "m.py")
    assert lines[11:13] == ["def first():", "    total += 1"]
    assert lines[29:31] == ["def second():", "    total += 2"]
    assert [(r.start_line, r.end_line) for r in visible] == [(30, 35)]


def test_ranges_of_created_files_are_not_shifted(tmp_path):
    visible = [FileRange(file_path="n.py", start_line=1, end_line=3)]
    blocks = [
        EditBlock(file_path="n.py", new_lines=["a", "b", "c"], edit_type=EditType.create, sequence_number=1),
        EditBlock(file_path="n.py", old_lines=["b"], new_lines=["B"], sequence_number=2, visible_file_ranges=visible),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert all(r.applied for r in reports)
    assert (tmp_path / "n.py").read_text() == "a\nB\nc"
    assert [(r.start_line, r.end_line) for r in visible] == [(1, 3)]


def test_gateway_processes_applied_blocks_only(tmp_path):
    _write(tmp_path, "m.py", ["a = 1"])
    vcs = StubVersionControl(tmp_path, diff_text="--- a/m.py\n+++ b/m.py")
    checker = StubChecker()
    gateway = ValidationGateway(tmp_path, vcs, checker=checker)
    blocks = [
        EditBlock(file_path="m.py", old_lines=["nope nope nope"], new_lines=["x"], sequence_number=1),
        EditBlock(file_path="m.py", old_lines=["a = 1"], new_lines=["a = 2"], sequence_number=2),
    ]

    reports = apply_edit_blocks(blocks, EditApplier(tmp_path), gateway)

    assert [r.applied for r in reports] == [False, True]
    assert checker.checked == ["m.py"]
    assert vcs.staged == ["m.py"]
    assert reports[1].final_diff == "--- a/m.py\n+++ b/m.py"


def test_tracking_diff_prefers_final_diff_for_tracked_files():
    block = EditBlock(file_path="m.py")
    tracked = ApplyReport(original_edit_block=block, initial_diff="initial", final_diff="--- a/m.py")
    untracked = ApplyReport(
        original_edit_block=block, initial_diff="initial", final_diff="--- /dev/null\n+++ b/m.py"
    )
    unchecked = ApplyReport(original_edit_block=block, initial_diff="initial")

    assert _tracking_diff(tracked) == "--- a/m.py"
    assert _tracking_diff(untracked) == "initial"
    assert _tracking_diff(unchecked) == "initial"


def test_validate_and_apply_skips_ungrounded_blocks(tmp_path):
    _write(tmp_path, "m.py", ["a = 1", "b = 1"])
    blocks = [
        EditBlock(
            file_path="m.py",
            old_lines=["b = 1"],
            new_lines=["b = 2"],
            sequence_number=2,
            visible_code_blocks=[],
        ),
        EditBlock(
            file_path="m.py",
            old_lines=["a = 1"],
            new_lines=["a = 2"],
            sequence_number=1,
            visible_code_blocks=[CodeBlock(file_path="m.py", code="a = 1\nb = 1")],
        ),
    ]

    reports = validate_and_apply_edit_blocks(blocks, EditApplier(tmp_path))

    assert [r.original_edit_block.sequence_number for r in reports] == [1, 2]
    assert [r.applied for r in reports] == [True, False]
    assert "No code context found" in reports[1].error
    assert (tmp_path / "m.py").read_text() == "a = 2\nb = 1\n"


def test_apply_text_end_to_end(tmp_path):
    _write(tmp_path, "m.py", ["def f():", "    return 1"])
    text = "\n".join(
        [
            "Here is the change:",
            "```python",
            "edit_block:1",
            "m.py",
            "<<<<<<< SEARCH",
            "def f():",
            "    return 1",
            "=======",
            "def f():",
            "    return 2",
            ">>>>>>> REPLACE",
            "```",
        ]
    )

    reports = apply_text(text, tmp_path)

    assert [r.applied for r in reports] == [True]
    assert (tmp_path / "m.py").read_text() == "def f():\n    return 2\n"


def test_summarize_reports():
    ok = ApplyReport(original_edit_block=EditBlock(file_path="a", sequence_number=1), applied=True)
    failed = ApplyReport(original_edit_block=EditBlock(file_path="b", sequence_number=2), error="boom")
    unknown = ApplyReport(original_edit_block=EditBlock(file_path="c", sequence_number=3))

    assert summarize_reports([ok, failed, unknown]) == (
        "- edit_block:1 application succeeded\n"
        "- edit_block:2 application failed: boom\n"
        "- edit_block:3 application failed due to unknown reasons"
    )
