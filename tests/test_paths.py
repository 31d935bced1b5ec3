"""Tests for path parsing, escaping and normalization."""

from nest.paths import (
    ROOT, CanonicalPath, escape_segment, find_last_separator, normalize, split_raw_path,
)


def test_escaped_slash_stays_inside_title() -> None:
    """"\\/" is part of the title, not a separator."""
    assert split_raw_path("personal/Comcast\\/Xfinity") == ["personal", "Comcast/Xfinity"]
    assert normalize("personal/Comcast\\/Xfinity") == CanonicalPath.of("personal", "Comcast/Xfinity")


def test_empty_segments_are_dropped() -> None:
    assert split_raw_path("//a///b/") == ["a", "b"]


def test_trailing_backslash_is_literal() -> None:
    assert split_raw_path("abc\\") == ["abc\\"]


def test_escaped_backslash() -> None:
    assert split_raw_path("a\\\\b") == ["a\\b"]


def test_relative_path_uses_cwd() -> None:
    cwd = CanonicalPath.of("Internet", "Shopping")
    assert normalize("eBay", cwd) == CanonicalPath.of("Internet", "Shopping", "eBay")
    assert normalize("../item2", cwd) == CanonicalPath.of("Internet", "item2")
    assert normalize("./", cwd) == cwd


def test_absolute_path_ignores_cwd() -> None:
    assert normalize("/eMail", CanonicalPath.of("Internet")) == CanonicalPath.of("eMail")


def test_dotdot_above_root_stays_at_root() -> None:
    assert normalize("/../..") == ROOT
    assert normalize("..", ROOT) == ROOT


def test_display_escapes_each_segment() -> None:
    path = CanonicalPath.of("a/b", "c\\d")
    assert path.display() == "/a\\/b/c\\\\d"
    assert normalize(path.display()) == path


def test_root_display() -> None:
    assert ROOT.display() == "/"
    assert ROOT.is_root
    assert ROOT.name == ""


def test_escape_segment_plain_title_unchanged() -> None:
    assert escape_segment("Gmail") == "Gmail"


def test_find_last_separator_skips_escaped() -> None:
    assert find_last_separator("a/b\\/c") == 1
    assert find_last_separator("abc") == -1


def test_startswith_and_parent() -> None:
    path = CanonicalPath.of("Internet", "Shopping")
    assert path.startswith(CanonicalPath.of("Internet"))
    assert path.startswith(ROOT)
    assert not CanonicalPath.of("Internet").startswith(path)
    assert path.parent == CanonicalPath.of("Internet")
    assert path.depth == 2


def test_segments_are_coerced_to_tuple() -> None:
    assert CanonicalPath(["a", "b"]) == CanonicalPath.of("a", "b")
    assert hash(CanonicalPath(["a"])) == hash(CanonicalPath.of("a"))
