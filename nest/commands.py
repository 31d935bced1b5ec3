"""
Command table and command-line parsing for the Roost shell.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import UsageError


@dataclass
class CommandSpec:
    """
    Static description of one shell command.

    Attributes:
        completer: Argument completion kind: "groups", "entries",
            "groups_and_entries", "files" or None
        max_args: None means unbounded
        mutating: Refused in read-only sessions
    """

    name: str
    desc: str
    usage: str
    min_args: int = 0
    max_args: Optional[int] = 0
    completer: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    mutating: bool = False
    handler: Optional[Callable] = None


COMMANDS: List[CommandSpec] = [
    CommandSpec("cd", "Change directory (path to a group)", "cd [path]",
                0, 1, "groups", aliases=("chdir",)),
    CommandSpec("cl", "Change directory and list entries (cd+ls)", "cl [path]",
                0, 1, "groups"),
    CommandSpec("ls", "List items in the pwd or specified paths", "ls [path ...]",
                0, 99, "groups_and_entries", aliases=("dir",)),
    CommandSpec("pwd", "Print the current working directory", "pwd"),
    CommandSpec("mkdir", "Create a new group", "mkdir <group>",
                1, 1, "groups", mutating=True),
    CommandSpec("rmdir", "Delete an empty group", "rmdir <group>",
                1, 1, "groups", mutating=True),
    CommandSpec("new", "Create a new entry", "new [path]",
                0, 1, "groups", mutating=True),
    CommandSpec("rm", "Remove an entry", "rm <path|number>",
                1, 1, "entries", mutating=True),
    CommandSpec("mv", "Move an entry or group into another group",
                "mv <path|number> <group>", 2, 2, "groups_and_entries", mutating=True),
    CommandSpec("cp", "Copy an entry", "cp <path|number> <path>",
                2, 2, "groups_and_entries", aliases=("copy",), mutating=True),
    CommandSpec("clone", "Clone an entry and edit the copy", "clone <path|number> <path>",
                2, 2, "groups_and_entries", mutating=True),
    CommandSpec("rename", "Rename a group", "rename <group>",
                1, 1, "groups", mutating=True),
    CommandSpec("show", "Show an entry", "show [-f] [-a] <path|number>",
                1, 3, "entries"),
    CommandSpec("edit", "Edit an entry", "edit <path|number>",
                1, 1, "entries", mutating=True),
    CommandSpec("find", "Find entries by title, or by any field with -a",
                "find [-a] <text>", 1, 2),
    CommandSpec("xu", "Copy username to clipboard", "xu <path|number>",
                1, 1, "entries"),
    CommandSpec("xw", "Copy URL (www) to clipboard", "xw <path|number>",
                1, 1, "entries"),
    CommandSpec("xp", "Copy password to clipboard", "xp <path|number>",
                1, 1, "entries"),
    CommandSpec("xx", "Clear the clipboard", "xx"),
    CommandSpec("open", "Open a store file", "open <file>",
                1, 1, "files"),
    CommandSpec("save", "Save the store to disk", "save", mutating=True),
    CommandSpec("saveas", "Save the store to a new file", "saveas <file>",
                1, 1, "files", mutating=True),
    CommandSpec("passwd", "Change the master passphrase", "passwd", mutating=True),
    CommandSpec("close", "Close the open store", "close"),
    CommandSpec("history", "Show or clear the command history", "history [-c] [count]",
                0, 2),
    CommandSpec("cls", "Clear the screen", "cls", aliases=("clear",)),
    CommandSpec("ver", "Print the version", "ver", aliases=("version",)),
    CommandSpec("help", "Print help", "help [command]",
                0, 1, aliases=("h", "?")),
    CommandSpec("quit", "Quit", "quit", aliases=("exit",)),
]


class CommandRegistry:
    """
    Name -> CommandSpec table with handlers bound once at startup.

    Args:
        handlers (Dict[str, Callable]): Handler for every command name.
            A missing handler is a programming error and raises ValueError.
    """

    def __init__(self, handlers: Dict[str, Callable], specs: Sequence[CommandSpec] = COMMANDS):
        self.specs: Dict[str, CommandSpec] = {}
        self.aliases: Dict[str, str] = {}

        for spec in specs:
            if spec.name not in handlers:
                raise ValueError(f"No handler bound for command '{spec.name}'")
            spec = replace(spec, handler=handlers[spec.name])
            self.specs[spec.name] = spec
            self.aliases[spec.name] = spec.name
            for alias in spec.aliases:
                self.aliases[alias] = spec.name

    def names(self) -> List[str]:
        return sorted(self.aliases)

    def lookup(self, word: str) -> Optional[CommandSpec]:
        """Exact name or alias only; no prefix matching."""
        name = self.aliases.get(word.lower())
        return self.specs[name] if name else None

    def resolve(self, word: str) -> CommandSpec:
        """
        Resolve a typed command word using aliases and prefix matching.

        Raises:
            UsageError: Unknown or ambiguous command
        """
        word = word.strip().lower()
        spec = self.lookup(word)
        if spec is not None:
            return spec

        matches = sorted({self.aliases[a] for a in self.aliases if a.startswith(word)})
        if len(matches) == 1:
            return self.specs[matches[0]]
        if matches:
            raise UsageError(f"Ambiguous command '{word}'. Could be: {', '.join(matches)}")
        raise UsageError(f"Unknown command: '{word}'. Type 'help' for available commands")

    @staticmethod
    def check_arity(spec: CommandSpec, args: Sequence[str]) -> None:
        too_few = len(args) < spec.min_args
        too_many = spec.max_args is not None and len(args) > spec.max_args
        if too_few or too_many:
            raise UsageError(f"Usage: {spec.usage}")


def split_command_line(line: str) -> List[str]:
    """
    Split a shell line into words.

    Whitespace separates words unless quoted or backslash-escaped. The
    backslash is consumed only in front of whitespace or a quote; any other
    backslash pair (e.g. "\\/") is left for the path layer to interpret.

    Raises:
        UsageError: Unterminated quote
    """
    words = []
    current = []
    in_word = False
    quote = None
    i = 0
    while i < len(line):
        ch = line[i]
        nxt = line[i + 1] if i + 1 < len(line) else ""
        if quote:
            if ch == quote:
                quote = None
            elif ch == "\\" and nxt == quote:
                current.append(nxt)
                i += 1
            else:
                current.append(ch)
        elif ch == "\\" and nxt:
            if nxt.isspace() or nxt in "\"'":
                current.append(nxt)
            else:
                current.append(ch + nxt)
            i += 1
            in_word = True
        elif ch in "\"'":
            quote = ch
            in_word = True
        elif ch.isspace():
            if in_word:
                words.append("".join(current))
                current = []
                in_word = False
        else:
            current.append(ch)
            in_word = True
        i += 1

    if quote:
        raise UsageError("Unterminated quote")
    if in_word:
        words.append("".join(current))
    return words
