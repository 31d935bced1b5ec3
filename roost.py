#!/usr/bin/env python3
"""
Roost v1.0.0
An interactive shell for an encrypted, hierarchical credential store.
Groups behave like directories and entries like files: cd, ls, mkdir, mv
and friends work on them by path or by the numbers of the last listing.
"""

# ==============================================================================
# STANDARD LIBRARY IMPORTS
# ==============================================================================
import argparse
import sys
from pathlib import Path

# ==============================================================================
# THIRD-PARTY LIBRARY IMPORTS
# ==============================================================================
from loguru import logger
from prompt_toolkit import prompt
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings

# ==============================================================================
# CUSTOM MODULE IMPORTS
# ==============================================================================
from nest import config, password_generator, ui, validation
from nest.commands import CommandRegistry, split_command_line
from nest.completion import ShellCompleter
from nest.errors import (
    EntryNotFoundError, FatalError, FileChangedError,
    ForeignLockError, InvalidPathError, PassphraseError, ReadOnlyError,
    RoostError, StoreLoadError, TitleConflictError, UnsavedChangesError,
    UsageError,
)
from nest.logging_config import configure_logging
from nest.session import Session

# ==============================================================================
# CONSTANTS
# ==============================================================================

BANNER = f"""
  roost v{config.VERSION}
  interactive shell for encrypted credential stores
"""

INTRO = "Type 'help' for a description of available commands.\nType 'help <command>' for details on individual commands."

# ==============================================================================
# MAIN ROOST CLASS
# ==============================================================================

class Roost:
    """
    Application controller for the Roost shell.

    Owns the Session, the command registry and the prompt_toolkit state,
    turns each input line into a handler call and reports failures.
    """

    def __init__(self, readonly: bool = False, recycle: bool = True, histfile=None):
        self.session = Session(readonly=readonly, recycle=recycle)
        self.histfile = Path(histfile) if histfile else None
        self.history = FileHistory(str(self.histfile)) if self.histfile else InMemoryHistory()
        self.auto_suggest = AutoSuggestFromHistory()
        self.bindings = KeyBindings()
        self.registry = CommandRegistry(self._handlers())
        self.completer = ShellCompleter(self.session.completion, self.registry)
        self.running = True

    def _handlers(self):
        return {
            "cd": self.cmd_cd,
            "cl": self.cmd_cl,
            "ls": self.cmd_ls,
            "pwd": self.cmd_pwd,
            "mkdir": self.cmd_mkdir,
            "rmdir": self.cmd_rmdir,
            "new": self.cmd_new,
            "rm": self.cmd_rm,
            "mv": self.cmd_mv,
            "cp": self.cmd_cp,
            "clone": self.cmd_clone,
            "rename": self.cmd_rename,
            "show": self.cmd_show,
            "edit": self.cmd_edit,
            "find": self.cmd_find,
            "xu": self.cmd_xu,
            "xw": self.cmd_xw,
            "xp": self.cmd_xp,
            "xx": self.cmd_xx,
            "open": self.cmd_open,
            "save": self.cmd_save,
            "saveas": self.cmd_saveas,
            "passwd": self.cmd_passwd,
            "close": self.cmd_close,
            "history": self.cmd_history,
            "cls": self.cmd_cls,
            "ver": self.cmd_ver,
            "help": self.cmd_help,
            "quit": self.cmd_quit,
        }

    # ==========================================================================
    # COMMAND DISPATCH
    # ==========================================================================

    def _format_prompt(self) -> str:
        return f"roost:{self.session.pwd()}> "

    def execute(self, words):
        """Run one already-split command. Errors propagate."""
        if not words:
            return
        spec = self.registry.resolve(words[0])
        args = words[1:]
        self.registry.check_arity(spec, args)
        if spec.mutating and self.session.readonly:
            raise ReadOnlyError()
        spec.handler(args)

    def run_words(self, words) -> None:
        """Run a command, printing recoverable errors. FatalError propagates."""
        try:
            self.execute(words)
        except FatalError:
            raise
        except RoostError as e:
            print(f"[-] {e}")
        except (KeyboardInterrupt, EOFError):
            print("\n[i] Cancelled")

    def dispatch(self, line: str) -> None:
        try:
            words = split_command_line(line)
        except UsageError as e:
            print(f"[-] {e}")
            return
        self.run_words(words)

    def run(self) -> None:
        """Interactive loop until quit."""
        print(BANNER)
        print(INTRO)
        while self.running:
            try:
                line = prompt(
                    self._format_prompt(),
                    history=self.history,
                    auto_suggest=self.auto_suggest,
                    completer=self.completer,
                    complete_while_typing=False,
                    key_bindings=self.bindings,
                )
            except KeyboardInterrupt:
                print("\n[i] Press Ctrl+D or type 'quit' to exit")
                continue
            except EOFError:
                print()
                self.dispatch("quit")
                if self.running:
                    print("[!] Input closed; unsaved changes are discarded")
                    self.session.quit(force=True)
                    self.running = False
                break
            self.dispatch(line)

    def request_save(self) -> None:
        """After a change to a store that has a file, offer to save it."""
        if not (self.session.has_file and self.session.has_changed):
            return
        if ui.confirm("Database was modified. Do you want to save it now?"):
            self.cmd_save([])

    # ==========================================================================
    # NAVIGATION
    # ==========================================================================

    def cmd_cd(self, args):
        self.session.cd(args[0] if args else None)

    def cmd_cl(self, args):
        self.session.cd(args[0] if args else None)
        self.cmd_ls([])

    def cmd_ls(self, args):
        ui.display_listing(self.session.ls(args))

    def cmd_pwd(self, args):
        print(self.session.pwd())

    # ==========================================================================
    # GROUPS
    # ==========================================================================

    def cmd_mkdir(self, args):
        path = self.session.make_group(args[0])
        print(f"[+] Created group {path.display()}")
        self.request_save()

    def cmd_rmdir(self, args):
        path = self.session.remove_group(args[0])
        print(f"[+] Removed group {path.display()}")
        self.request_save()

    def cmd_rename(self, args):
        path, group = self.session.group_at(args[0])
        if path.is_root:
            raise InvalidPathError("The root group cannot be renamed")
        new_title = ui.ask("Enter the groups new Title: ")
        if self.session.rename_group(args[0], new_title):
            print(f'[+] Renamed {path.display()} to "{group.title}"')
            self.request_save()
        else:
            print("[i] No change made")

    # ==========================================================================
    # ENTRIES
    # ==========================================================================

    def _ask_new_password(self, keep_current: bool = False):
        """
        Prompt for a password with double entry.

        "g", "g<N>" and "w" generate one instead. With keep_current, an
        empty reply returns None.
        """
        hint = "blank keeps current, " if keep_current else ""
        while True:
            first = ui.ask_password(f'Password ({hint}"g" or "w" to generate): ')
            if keep_current and first == "":
                return None
            try:
                generated = password_generator.password_from_request(first)
            except password_generator.PasswordGenerationError as e:
                print(f"[-] {e}")
                continue
            if generated is not None:
                print(f"[+] Generated a {len(generated)}-character password")
                return generated
            if first == ui.ask_password("Retype to verify: "):
                return first
            print("[-] Entries mismatched. Please try again.")

    def cmd_new(self, args):
        group_path, title = self.session.group_for_new_entry(args[0] if args else None)
        print(f'[i] Adding new entry to "{group_path.display()}"')

        if title is None:
            title = ui.ask("Title: ")
        else:
            print(f"Title: {title}")
        if not title:
            print("[-] No title given; entry not created")
            return
        if self.session.index.has_entry(group_path.child(title)):
            raise TitleConflictError(f'An entry titled "{title}" is already in path.')

        username = ui.ask("Username: ")
        password = self._ask_new_password()
        url = ui.ask("URL: ")
        if not validation.validate_url(url):
            print("[!] That URL does not look valid; keeping it anyway")
        notes = ui.ask_multiline("Notes/Comments")

        entry = self.session.add_entry(group_path, {
            "title": title,
            "username": username,
            "password": password,
            "url": url,
            "notes": notes or "",
        })
        print(f'[+] Entry "{entry.title}" created in {group_path.display()}')
        self.request_save()

    def cmd_rm(self, args):
        entry = self.session.remove_entry(args[0])
        print(f'[+] Removed "{entry.title}"')
        self.request_save()

    def cmd_mv(self, args):
        warning = self.session.move(args[0], args[1])
        if warning:
            print(f"[!] {warning}")
        print(f"[+] Moved {args[0]} to {self.session.navigator.resolve(args[1]).display()}")
        self.request_save()

    def cmd_cp(self, args):
        copy = self.session.copy_entry(args[0], args[1])
        print(f"[+] Copied to {self.session.locator.entry_location(copy)[0]}")
        self.request_save()

    def cmd_clone(self, args):
        had_changes = self.session.has_changed
        copy = self.session.copy_entry(args[0], args[1])
        try:
            changes = self._ask_entry_changes(copy)
            self.session.update_entry(copy, changes, keep_backup=False)
        except (RoostError, KeyboardInterrupt, EOFError):
            self.session.discard_copy(copy, had_changes)
            raise
        print(f"[+] Cloned to {self.session.locator.entry_location(copy)[0]}")
        self.request_save()

    def _split_flags(self, args, allowed):
        flags = {a for a in args if a in allowed}
        rest = [a for a in args if a not in allowed]
        return flags, rest

    def cmd_show(self, args):
        flags, rest = self._split_flags(args, {"-f", "-a"})
        if len(rest) != 1:
            raise UsageError(f"Usage: {self.registry.lookup('show').usage}")
        entry = self.session.locator.locate(rest[0])
        ui.display_entry(
            entry,
            self.session.locator.entry_location(entry),
            show_password="-f" in flags,
            show_all="-a" in flags,
        )

    def _ask_entry_changes(self, entry):
        """Prompt for every field; a blank reply keeps the current value (None)."""
        print(f'[i] Editing "{entry.title}". Press Enter to keep a field unchanged.')
        return {
            "title": ui.ask(f"Title [{entry.title}]: ") or None,
            "username": ui.ask(f"Username [{entry.username}]: ") or None,
            "password": self._ask_new_password(keep_current=True),
            "url": ui.ask(f"URL [{entry.url}]: ") or None,
            "notes": ui.ask_multiline("Notes/Comments", current=entry.notes),
        }

    def cmd_edit(self, args):
        entry = self.session.locator.locate(args[0])
        if entry.origin_id:
            original = self.session.original_of(entry)
            if original is None:
                raise EntryNotFoundError(f"The entry at {entry.origin_path} no longer exists")
            if not ui.confirm(f"This is a search result. Edit the real entry at {entry.origin_path}?"):
                print("[i] Edit cancelled")
                return
            entry = original

        changes = self._ask_entry_changes(entry)
        if self.session.update_entry(entry, changes):
            print(f'[+] Entry "{entry.title}" updated')
            self.request_save()
        else:
            print("[i] No changes made")

    def cmd_find(self, args):
        flags, rest = self._split_flags(args, {"-a"})
        if len(rest) != 1:
            raise UsageError(f"Usage: {self.registry.lookup('find').usage}")

        copies = self.session.find(rest[0], all_fields="-a" in flags)
        if not copies:
            print("No matches.")
            return

        print(f" - {len(copies)} matches found and placed into /{config.FOUND_DIR}/")
        if len(copies) == 1:
            if ui.confirm("Would you like to show this entry?"):
                entry = copies[0]
                ui.display_entry(entry, self.session.locator.entry_location(entry))
        elif ui.confirm("Would you like to list them now?"):
            ui.display_listing(self.session.ls([f"/{config.FOUND_DIR}"]))

    # ==========================================================================
    # CLIPBOARD
    # ==========================================================================

    def _copy_field(self, token, field, label):
        entry = self.session.locator.locate(token)
        value = getattr(entry, field)
        if not value:
            print(f'[-] "{entry.title}" has no {label}')
            return
        if ui.copy_to_clipboard(value):
            print(f'[+] Copied {label} for "{entry.title}" to the clipboard.')

    def cmd_xu(self, args):
        self._copy_field(args[0], "username", "username")

    def cmd_xw(self, args):
        self._copy_field(args[0], "url", "URL")

    def cmd_xp(self, args):
        self._copy_field(args[0], "password", "password")

    def cmd_xx(self, args):
        if ui.clear_clipboard():
            print("[+] Clipboard cleared.")

    # ==========================================================================
    # STORE FILES
    # ==========================================================================

    def cmd_open(self, args):
        path = Path(args[0]).expanduser()
        force = False
        if self.session.has_changed:
            if not ui.confirm("WARNING: The database has changed and was not saved. Really open another?"):
                return
            force = True
        if not path.is_file():
            raise StoreLoadError(f"Cannot open: {path}: File does not exist")

        passphrase = ui.ask_password(f"Please provide the master password for {path}: ")
        warning = self.session.open_store(path, passphrase, force=force)
        if warning:
            print(f"[!] {warning}")
        print(f"[+] Opened {path}")

    def cmd_save(self, args):
        force_lock = force_changed = False
        while True:
            try:
                path = self.session.save(force_lock=force_lock, force_changed=force_changed)
                break
            except FileChangedError as e:
                if not ui.confirm(str(e)):
                    print("[i] Not saved")
                    return
                force_changed = True
            except ForeignLockError as e:
                if not ui.confirm(str(e)):
                    print("[i] Not saved")
                    return
                force_lock = True
        print(f"[+] Saved to {path}")

    def cmd_saveas(self, args):
        path = Path(args[0]).expanduser()
        force = False
        if path.exists():
            if not ui.confirm(f"WARNING: {path} already exists. Overwrite it?"):
                return
            force = True
        passphrase = ui.ask_password_verified("Please provide the master password: ")
        self.session.save_as(path, passphrase, force=force)
        print(f"[+] Saved to {path}")

    def cmd_passwd(self, args):
        current = ui.ask_password("The current password: ")
        if current != self.session.master_passphrase():
            raise PassphraseError("Incorrect password.")
        new = ui.ask_password_verified("The new password: ")
        self.session.change_passphrase(current, new)
        if ui.confirm("Password changed but file not saved. Save it now?"):
            self.cmd_save([])

    def cmd_close(self, args):
        try:
            self.session.close()
        except UnsavedChangesError as e:
            if not ui.confirm(str(e)):
                return
            self.session.close(force=True)
        print("[+] Store closed")

    def cmd_quit(self, args):
        try:
            self.session.quit()
        except UnsavedChangesError as e:
            if not ui.confirm(str(e)):
                return
            self.session.quit(force=True)
        self.running = False
        print("[+] Roost store secured")

    # ==========================================================================
    # SHELL
    # ==========================================================================

    def cmd_history(self, args):
        flags, rest = self._split_flags(args, {"-c"})
        if "-c" in flags:
            if self.histfile is not None:
                self.histfile.write_text("")
                self.history = FileHistory(str(self.histfile))
            else:
                self.history = InMemoryHistory()
            print("[+] History cleared")
            return

        lines = list(self.history.load_history_strings())[::-1]
        first = 0
        if rest:
            if not rest[0].isdigit():
                raise UsageError(f"Usage: {self.registry.lookup('history').usage}")
            first = max(len(lines) - int(rest[0]), 0)
        for number, line in enumerate(lines[first:], first + 1):
            print(f"{number:>5}  {line}")

    def cmd_cls(self, args):
        ui.clear_screen()

    def cmd_ver(self, args):
        print(f"{config.APP_NAME} {config.VERSION}")

    def cmd_help(self, args):
        if args:
            spec = self.registry.resolve(args[0])
            print(f"{spec.name} -- {spec.desc}")
            print(f"Usage: {spec.usage}")
            if spec.aliases:
                print(f"Aliases: {', '.join(spec.aliases)}")
            return
        print()
        for spec in self.registry.specs.values():
            print(f"  {spec.name:<8} -- {spec.desc}")
        print()
        print("Entries may be named by path or by their number in the last ls.")
        print("Escape a slash inside a title as \\/ and a space as \\ .")
        print()

# ==============================================================================
# ENTRY POINT
# ==============================================================================

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog=config.APP_NAME,
        description="Roost is an interactive shell for an encrypted, hierarchical credential store. Groups work like directories and entries like files, so the store is browsed with cd, ls, mkdir, mv, show and edit.",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        'store',
        nargs='?',
        help='Store file to open on startup'
    )
    parser.add_argument(
        '--readonly',
        action='store_true',
        help='Open the store read-only (no changes, no saving, no lock)'
    )
    parser.add_argument(
        '--no-recycle',
        action='store_true',
        help='Do not keep copies of removed or edited entries under /Backup'
    )
    parser.add_argument(
        '--histfile',
        default=str(config.HISTORY_FILE),
        help=f'Command history file (default: {config.HISTORY_FILE})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug logging'
    )
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)
    roost = Roost(readonly=args.readonly, recycle=not args.no_recycle, histfile=args.histfile)

    try:
        if args.store:
            roost.run_words(["open", args.store])
        roost.run()
    except FatalError as e:
        logger.error(str(e))
        print(f"[!] Fatal: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n[-] Interrupted")
        return 130
    finally:
        roost.session.release_lock()
    return 0


if __name__ == "__main__":
    sys.exit(main())
