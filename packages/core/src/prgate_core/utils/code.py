"""File-type helpers shared by the scanners and the approval engine."""

from __future__ import annotations

# Executable script types. No configuration or module may auto-approve these.
FORBIDDEN_APPROVAL_EXTENSIONS = frozenset({"php", "js"})

PHP_EXTENSIONS = frozenset({"php"})
SVG_EXTENSIONS = frozenset({"svg"})


def file_extension(file_name: str) -> str:
    """Return the lower-cased extension without the dot, or "" when there is none."""
    base = file_name.rsplit("/", 1)[-1]
    if "." not in base.lstrip("."):
        return ""
    return base.rsplit(".", 1)[-1].lower()


def is_forbidden_for_approval(file_name: str) -> bool:
    return file_extension(file_name) in FORBIDDEN_APPROVAL_EXTENSIONS


def has_extension(file_name: str, extensions) -> bool:
    return file_extension(file_name) in extensions


def in_skipped_folder(file_name: str, skip_folders) -> bool:
    """Return True if file_name lives under one of the skip_folders prefixes.

    "vendor" and "vendor/" both match "vendor/lib/a.php" but not "vendored/a.php".
    """
    for folder in skip_folders:
        prefix = folder.strip("/") + "/"
        if prefix != "/" and file_name.startswith(prefix):
            return True
    return False
