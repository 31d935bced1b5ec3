"""
Tab completion.

CompletionEngine works purely on the path index: given what the user has
typed so far it returns the strings that would complete it. ShellCompleter
adapts that to prompt_toolkit, choosing the right kind of candidate for
each command's arguments.
"""

from typing import Iterable, List, Tuple

from prompt_toolkit.completion import Completer, Completion, PathCompleter
from prompt_toolkit.document import Document

from .navigator import Navigator
from .paths import CanonicalPath, escape_segment, find_last_separator, normalize


def _unescape_fragment(fragment: str) -> str:
    """Unescape a partially typed segment; a dangling backslash is dropped."""
    out = []
    i = 0
    while i < len(fragment):
        if fragment[i] == "\\":
            if i + 1 < len(fragment):
                out.append(fragment[i + 1])
            i += 2
            continue
        out.append(fragment[i])
        i += 1
    return "".join(out)


class CompletionEngine:
    """
    Completion candidates for groups, entries, or both.

    Candidates keep whatever prefix the user typed ("./", "../", "/" or a
    bare relative path) and add the escaped next segment. Group candidates
    end in "/".
    """

    def __init__(self, navigator: Navigator):
        self.navigator = navigator

    def _split(self, partial: str) -> Tuple[str, str, CanonicalPath]:
        cut = find_last_separator(partial)
        typed_prefix = partial[:cut + 1]
        fragment = _unescape_fragment(partial[cut + 1:])
        base = normalize(typed_prefix, self.navigator.cwd) if typed_prefix else self.navigator.cwd
        return typed_prefix, fragment, base

    @staticmethod
    def _extending(keys: Iterable[CanonicalPath], base: CanonicalPath, fragment: str) -> List[str]:
        depth = base.depth + 1
        return [
            key.name for key in keys
            if key.depth == depth and key.startswith(base) and key.name.startswith(fragment)
        ]

    def complete_groups(self, partial: str) -> List[str]:
        typed_prefix, fragment, base = self._split(partial)
        index = self.navigator.index
        candidates = [
            typed_prefix + escape_segment(name) + "/"
            for name in self._extending(index.forward_groups, base, fragment)
        ]
        if fragment in (".", ".."):
            if index.has_group(normalize(typed_prefix + fragment, self.navigator.cwd)):
                candidates.append(typed_prefix + fragment + "/")
        return sorted(set(candidates))

    def complete_entries(self, partial: str) -> List[str]:
        typed_prefix, fragment, base = self._split(partial)
        names = self._extending(self.navigator.index.forward_entries, base, fragment)
        return sorted({typed_prefix + escape_segment(name) for name in names})

    def complete_groups_and_entries(self, partial: str) -> List[str]:
        return sorted(set(self.complete_groups(partial)) | set(self.complete_entries(partial)))

    def complete(self, kind: str, partial: str) -> List[str]:
        if kind == "groups":
            return self.complete_groups(partial)
        if kind == "entries":
            return self.complete_entries(partial)
        if kind == "groups_and_entries":
            return self.complete_groups_and_entries(partial)
        return []

# ==============================================================================
# PROMPT_TOOLKIT ADAPTER
# ==============================================================================

def _split_current_word(text: str) -> Tuple[List[str], str]:
    """
    Split a command line at unescaped whitespace.

    Returns:
        (complete words before the cursor word, the word being typed)
    """
    words = []
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch.isspace():
            if i > start:
                words.append(text[start:i])
            start = i + 1
        i += 1
    return words, text[start:]


class ShellCompleter(Completer):
    """Completes command names, then each command's arguments."""

    def __init__(self, engine: CompletionEngine, registry):
        self.engine = engine
        self.registry = registry
        self.path_completer = PathCompleter(expanduser=True)

    def get_completions(self, document, complete_event):
        words, word = _split_current_word(document.text_before_cursor)

        if not words:
            for name in self.registry.names():
                if name.startswith(word):
                    yield Completion(name, start_position=-len(word))
            return

        spec = self.registry.lookup(words[0])
        if spec is None or not spec.completer or word.startswith("-"):
            return

        if spec.completer == "files":
            yield from self.path_completer.get_completions(
                Document(word, len(word)), complete_event
            )
            return

        partial = word.replace("\\ ", " ")
        for candidate in self.engine.complete(spec.completer, partial):
            yield Completion(
                candidate.replace(" ", "\\ "),
                start_position=-len(word),
                display=candidate,
            )
