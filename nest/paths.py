"""
Path handling for Roost.

Groups and entries are addressed like files: titles joined by "/". A title
may itself contain a slash, which the user types as "\\/". This module turns
whatever the user typed (relative or absolute, escaped, with "." and "..")
into a CanonicalPath, the one key the rest of the session looks things up
by, and renders CanonicalPaths back into the escaped form.

Grammar:
    - "/" separates segments; repeated separators are ignored
    - "\\/" is a literal slash inside a segment
    - "\\X" is a literal X for any other character (so "\\\\" is a backslash)
    - a lone trailing backslash is kept as-is
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class CanonicalPath:
    """
    Immutable, hashable location in the group tree.

    Two paths are equal when their title segments are equal; the empty
    path is the root group.
    """

    segments: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.segments, tuple):
            object.__setattr__(self, "segments", tuple(self.segments))

    @classmethod
    def of(cls, *titles: str) -> "CanonicalPath":
        return cls(tuple(titles))

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        """Last segment, or "" for the root."""
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> "CanonicalPath":
        return CanonicalPath(self.segments[:-1])

    @property
    def depth(self) -> int:
        return len(self.segments)

    def child(self, title: str) -> "CanonicalPath":
        return CanonicalPath(self.segments + (title,))

    def startswith(self, other: "CanonicalPath") -> bool:
        """True if other is this path or one of its ancestors."""
        return self.segments[:len(other.segments)] == other.segments

    def humanize(self) -> str:
        return humanize(self.segments)

    def display(self) -> str:
        """Escaped absolute form, e.g. "/personal/Comcast\\/Xfinity"."""
        return "/" + self.humanize()

    def __str__(self) -> str:
        return self.display()


ROOT = CanonicalPath()

# ==============================================================================
# ESCAPING
# ==============================================================================

def escape_segment(title: str) -> str:
    """Escape a single title so it survives split_raw_path()."""
    return title.replace("\\", "\\\\").replace("/", "\\/")


def humanize(segments: Iterable[str]) -> str:
    """Join segments with "/", escaping each; no leading slash."""
    return "/".join(escape_segment(s) for s in segments)


def split_raw_path(raw: str) -> List[str]:
    """
    Split a user-typed path on unescaped slashes and unescape each part.

    Empty parts (leading, trailing or doubled slashes) are dropped; "." and
    ".." are returned untouched for normalize() to deal with.

    Example:
        >>> split_raw_path("personal/Comcast\\/Xfinity")
        ['personal', 'Comcast/Xfinity']
    """
    segments = []
    current = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == "\\":
            if i + 1 < len(raw):
                current.append(raw[i + 1])
                i += 2
                continue
            current.append(ch)
        elif ch == "/":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current))
    return [s for s in segments if s]


def find_last_separator(raw: str) -> int:
    """Index of the last unescaped "/" in raw, or -1."""
    last = -1
    i = 0
    while i < len(raw):
        if raw[i] == "\\":
            i += 2
            continue
        if raw[i] == "/":
            last = i
        i += 1
    return last

# ==============================================================================
# RESOLUTION
# ==============================================================================

def normalize(raw: str, cwd: CanonicalPath = ROOT) -> CanonicalPath:
    """
    Resolve a user-typed path against the current path.

    Args:
        raw (str): Path as typed; absolute when it starts with "/"
        cwd (CanonicalPath): Path relative input is resolved against

    Returns:
        CanonicalPath: Path with no ".", ".." or empty segments. A ".."
            above the root is dropped.
    """
    stack = [] if raw.startswith("/") else list(cwd.segments)
    for part in split_raw_path(raw):
        if part == ".":
            continue
        if part == "..":
            if stack:
                stack.pop()
            continue
        stack.append(part)
    return CanonicalPath(tuple(stack))
