"""Last applied production tag — a single value, overwritten on promotion."""

import os


def current_tag(path: str) -> str | None:
    """Return the last promoted tag, or None if nothing was ever promoted."""
    try:
        with open(path) as f:
            tag = f.read().strip()
    except FileNotFoundError:
        return None
    return tag or None


def write_tag(path: str, tag: str) -> None:
    """Overwrite the tag file with exactly `tag`."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, mode=0o755, exist_ok=True)
    with open(path, "w") as f:
        f.write(tag)
