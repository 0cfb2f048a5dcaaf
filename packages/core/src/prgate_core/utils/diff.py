"""Unified-diff helpers for placing inline comments."""

from __future__ import annotations


def get_diff_positions(patch_text: str) -> dict[int, int]:
    """Map each added new-file line to its review-comment position in the patch.

    Positions run on across hunks instead of restarting at each one. Position 1
    is the first line below the first @@; every later @@ header takes a
    position of its own, as GitHub counts it. Context and removed lines are
    counted but never mapped.
    """
    positions: dict[int, int] = {}
    diff_position = 0
    file_line: int | None = None
    seen_hunk = False

    for line in patch_text.splitlines():
        if line.startswith("@@"):
            if seen_hunk:
                diff_position += 1
            seen_hunk = True
            file_line = _hunk_new_start(line)
            continue

        diff_position += 1

        if line.startswith("+") and not line.startswith("+++"):
            if file_line is not None:
                positions[file_line] = diff_position
                file_line += 1
        elif line.startswith("-") and not line.startswith("---"):
            pass
        elif file_line is not None:
            file_line += 1

    return positions


def get_added_lines(patch_text: str) -> set[int]:
    """New-file line numbers added by the patch."""
    return set(get_diff_positions(patch_text))


def _hunk_new_start(header: str) -> int | None:
    # "@@ -10,2 +11,3 @@ def foo():" -> 11
    try:
        new_file_range = header.split("+")[1].split(" ")[0]
        return int(new_file_range.split(",")[0])
    except (IndexError, ValueError):
        return None
