"""
Roost User Interface Components

Prompting, display and clipboard helpers for the Roost shell. All terminal
input goes through prompt_toolkit's prompt() imported here, so there is a
single place to patch when driving the shell from tests.

Key Features:
- Listing output with groups first, then numbered entries
- Entry display with the password hidden unless asked for
- Double-entry passphrase prompts
- Clipboard copy with timed auto-clear

Dependencies: prompt_toolkit for input, pyperclip for clipboard support
"""

import threading
import time
from datetime import datetime
from typing import List, Optional, Tuple

import pyperclip
from prompt_toolkit import prompt
from prompt_toolkit.shortcuts import clear

from . import config
from .database import Entry
from .navigator import Listing
from .paths import escape_segment

# ==============================================================================
# INPUT HELPERS
# ==============================================================================

def ask(message: str, default: str = "") -> str:
    return prompt(message, default=default).strip()


def ask_password(message: str = "Password: ") -> str:
    return prompt(message, is_password=True)


def ask_password_verified(message: str = "Password: ",
                          verify_message: str = "Retype to verify: ") -> str:
    """
    Prompt twice until both replies match.

    Returns:
        str: The agreed password (may be empty; callers decide whether
            that is acceptable)
    """
    while True:
        first = ask_password(message)
        second = ask_password(verify_message)
        if first == second:
            return first
        print("[-] Passwords did not match. Please try again.")


def confirm(question: str) -> bool:
    """Ask a [y/N] question; anything but y/yes means no."""
    answer = prompt(f"{question} [y/N] ").strip().lower()
    return answer in ("y", "yes")


def ask_multiline(message: str, current: Optional[str] = None) -> Optional[str]:
    """
    Read lines until a line holding a single ".".

    Returns:
        Optional[str]: The text, or None if the user entered nothing at all
            (meaning "keep the current value" when editing)
    """
    print(f"{message} (\".\" on a line by itself ends input)")
    if current:
        print("[i] An empty first line keeps the current notes")
    lines: List[str] = []
    while True:
        line = prompt("| ")
        if line == ".":
            break
        if not lines and line == "" and current is not None:
            return None
        lines.append(line)
    return "\n".join(lines)

# ==============================================================================
# DISPLAY FUNCTIONS
# ==============================================================================

def short_url(url: str) -> str:
    """URL without its http(s):// prefix and trailing slash, for listings."""
    for prefix in ("https://", "http://"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    return url.rstrip("/")


def display_listing(listing: Listing) -> None:
    """
    Print ls output.

    Example Output:
        === Groups ===
        eMail/
        Internet/
        === Entries ===
        0. Gmail                                        mail.google.com
        1. Yahoo                                              yahoo.com
    """
    for raw in listing.missing:
        print(f"[-] Invalid path: {raw}")

    width = len(str(max(listing.entry_count - 1, 0)))
    show_headers = len(listing.sections) > 1

    for section in listing.sections:
        if show_headers and section.path is not None:
            print(f"{section.path.display()}:")
        if section.groups:
            print("=== Groups ===")
            for group in section.groups:
                print(f"{escape_segment(group.title)}/")
        if section.entries:
            print("=== Entries ===")
            for number, entry in section.entries:
                print(f"{number:>{width}}. {entry.title:<40.40} {short_url(entry.url):>30.30}")


def mask_password(password: str) -> str:
    """Fixed-width mask, so the length is not shown either."""
    return "*" * 8 if password else ""


def _format_time(timestamp: float) -> str:
    try:
        return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError, OSError):
        return str(timestamp)


def display_entry(entry: Entry, location: Tuple[str, str],
                  show_password: bool = False, show_all: bool = False) -> None:
    """
    Display one entry in the "%5s: %s" field layout.

    Args:
        entry (Entry): Entry to show
        location (Tuple[str, str]): (full path, group path) for the Path line
        show_password (bool): Print the password in clear
        show_all (bool): Also print created/modified times

    Example Output:
         Path: /Internet/
        Title: Gmail
        Uname: someone@example.com
         Pass: ********
          URL: https://mail.google.com/
        Notes: first line
               second line
    """
    _, group_path = location
    if group_path != "/":
        group_path += "/"
    password = entry.password if show_password else mask_password(entry.password)
    notes = entry.notes.replace("\n", "\n" + " " * 7)

    rows = [
        ("Path", group_path),
        ("Title", entry.title),
        ("Uname", entry.username),
        ("Pass", password),
        ("URL", entry.url),
        ("Notes", notes),
    ]
    if show_all:
        rows.append(("Made", _format_time(entry.created)))
        rows.append(("Mod", _format_time(entry.modified)))

    print()
    for label, value in rows:
        print("%5s: %s" % (label, value))
    print()

# ==============================================================================
# CLIPBOARD MANAGEMENT
# ==============================================================================

def copy_to_clipboard(text: str, timeout: int = config.CLIPBOARD_TIMEOUT) -> bool:
    """
    Copy text to the system clipboard and clear it again after timeout.

    The clipboard is only cleared if it still holds text, so anything the
    user copied in the meantime survives. A timeout of 0 disables clearing.

    Returns:
        bool: True if text was copied
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        print(f"[-] Clipboard error: {e}")
        return False

    if timeout > 0:
        def clear_later():
            time.sleep(timeout)
            try:
                if pyperclip.paste() == text:
                    pyperclip.copy("")
            except pyperclip.PyperclipException:
                # clipboard went away (e.g. display closed); nothing to clear
                return

        clear_thread = threading.Thread(target=clear_later)
        clear_thread.daemon = True
        clear_thread.start()

    return True


def clear_clipboard() -> bool:
    try:
        pyperclip.copy("")
        return True
    except pyperclip.PyperclipException as e:
        print(f"[-] Clipboard error: {e}")
        return False


def clear_screen() -> None:
    clear()
