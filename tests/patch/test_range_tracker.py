from blockedit.models import EditBlock, FileRange
from blockedit.patch.applier import unified_diff
from blockedit.patch.ranges import (
    LineEdit,
    line_edits_from_diff,
    merged_ranges_for_file,
    shift_visible_ranges,
    update_ranges_from_diff,
)


def _numbered(n: int) -> list:
    return [f"line {i}" for i in range(1, n + 1)]


def _block(path, *ranges) -> EditBlock:
    return EditBlock(
        file_path=path,
        old_lines=["x"],
        visible_file_ranges=[
            FileRange(file_path=path, start_line=s, end_line=e) for s, e in ranges
        ],
    )


def _spans(block: EditBlock):
    return [(r.start_line, r.end_line) for r in block.visible_file_ranges]


def test_insertion_shifts_later_ranges():
    old = _numbered(30)
    new = old[:9] + ["added a", "added b", "added c"] + old[9:]
    diff = unified_diff("\n".join(old), "\n".join(new), "f.py", "f.py")
    block = _block("f.py", (1, 5), (5, 15), (20, 25))

    edits = update_ranges_from_diff([block], "f.py", diff)

    assert edits == [LineEdit(edit_start_line_number=9, net_lines_added=3)]
    assert _spans(block) == [(1, 5), (5, 18), (23, 28)]


def test_deletion_shifts_ranges_back():
    old = _numbered(30)
    new = old[:9] + old[11:]
    diff = unified_diff("\n".join(old), "\n".join(new), "f.py", "f.py")
    block = _block("f.py", (20, 25))

    edits = update_ranges_from_diff([block], "f.py", diff)

    assert edits == [LineEdit(edit_start_line_number=9, net_lines_added=-2)]
    assert _spans(block) == [(18, 23)]


def test_other_files_are_not_shifted():
    diff = "@@ -1,1 +1,2 @@\n a\n+b"
    other = _block("other.py", (5, 6))

    update_ranges_from_diff([other], "f.py", diff)

    assert _spans(other) == [(5, 6)]


def test_blocks_without_ranges_are_skipped():
    block = EditBlock(file_path="f.py", old_lines=["x"])

    shift_visible_ranges([block], "f.py", [LineEdit(0, 4)])

    assert block.visible_file_ranges is None


def test_hunk_header_without_counts():
    edits = line_edits_from_diff("--- a/f\n+++ b/f\n@@ -3 +3,2 @@\n-old\n+new\n+more")

    assert edits == [LineEdit(edit_start_line_number=2, net_lines_added=1)]


def test_separate_runs_in_one_hunk():
    diff = "\n".join(
        [
            "@@ -1,5 +1,5 @@",
            " a",
            "-b",
            " c",
            "+c2",
            "+c3",
            " d",
            "-e",
        ]
    )

    edits = line_edits_from_diff(diff)

    assert edits == [
        LineEdit(edit_start_line_number=1, net_lines_added=-1),
        LineEdit(edit_start_line_number=3, net_lines_added=2),
        LineEdit(edit_start_line_number=4, net_lines_added=-1),
    ]


def test_multiple_hunks():
    diff = "\n".join(
        [
            "@@ -2,1 +2,2 @@",
            " b",
            "+b2",
            "@@ -40,2 +41,1 @@",
            "-x",
            " y",
        ]
    )

    assert line_edits_from_diff(diff) == [
        LineEdit(edit_start_line_number=2, net_lines_added=1),
        LineEdit(edit_start_line_number=39, net_lines_added=-1),
    ]


def test_no_newline_marker_is_ignored():
    diff = "\n".join(
        [
            "@@ -1,1 +1,2 @@",
            "-a",
            "\\ No newline at end of file",
            "+a",
            "+b",
        ]
    )

    assert line_edits_from_diff(diff) == [LineEdit(edit_start_line_number=0, net_lines_added=1)]


def test_empty_diff_has_no_edits():
    assert line_edits_from_diff("") == []


def test_merged_ranges_join_overlapping_and_adjacent():
    ranges = [
        FileRange(file_path="f.py", start_line=30, end_line=35),
        FileRange(file_path="f.py", start_line=1, end_line=5),
        FileRange(file_path="f.py", start_line=4, end_line=9),
        FileRange(file_path="f.py", start_line=10, end_line=12),
        FileRange(file_path="g.py", start_line=13, end_line=14),
        FileRange(file_path="f.py", start_line=2, end_line=3),
    ]

    merged = merged_ranges_for_file(ranges, "f.py")

    assert [(r.start_line, r.end_line) for r in merged] == [(1, 12), (30, 35)]


def test_merged_ranges_do_not_alias_inputs():
    original = FileRange(file_path="f.py", start_line=1, end_line=2)

    merged = merged_ranges_for_file([original], "f.py")
    merged[0].start_line = 2

    assert original.start_line == 1
