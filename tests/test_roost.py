"""Tests for the shell: dispatch, command handlers and main()."""

from pathlib import Path
from typing import List

import pyperclip
import pytest

import roost
from nest import config
from nest.database import Entry
from nest.paths import CanonicalPath
from nest.session import Session


def _out(capsys: pytest.CaptureFixture) -> str:
    return capsys.readouterr().out


# ==============================================================================
# DISPATCH
# ==============================================================================


def test_unknown_command(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("frobnicate")
    assert "[-] Unknown command: 'frobnicate'" in _out(capsys)


def test_wrong_argument_count(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("rm")
    assert "[-] Usage: rm <path|number>" in _out(capsys)


def test_unterminated_quote(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch('cd "eMail')
    assert "[-] Unterminated quote" in _out(capsys)
    assert shell.session.pwd() == "/"


def test_readonly_refuses_mutating_commands(capsys: pytest.CaptureFixture) -> None:
    app = roost.Roost(readonly=True)
    app.dispatch("mkdir Work")
    assert "[-] Function not available with a read-only store." in _out(capsys)


def test_prefix_and_alias(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("chdir eMail")
    shell.dispatch("pw")
    assert _out(capsys).strip() == "/eMail"


def test_prompt_shows_current_group(shell: roost.Roost) -> None:
    shell.dispatch("cd Internet/Shopping")
    assert shell._format_prompt() == "roost:/Internet/Shopping> "


# ==============================================================================
# NAVIGATION AND GROUPS
# ==============================================================================


def test_cl_lists_new_location(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("cl /eMail")
    out = _out(capsys)
    assert "0. Gmail" in out
    assert "1. Yahoo" in out


def test_bad_cd(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("cd nowhere")
    assert "[-] Invalid path: nowhere" in _out(capsys)


def test_mkdir_and_rmdir(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("mkdir /Internet/Banks")
    shell.dispatch("mkdir /Internet/Banks")
    shell.dispatch("rmdir /Internet")
    out = _out(capsys)
    assert "[+] Created group /Internet/Banks" in out
    assert "[-] Path already exists: /Internet/Banks" in out
    assert "2 entries and 2 sub-groups" in out


def test_rename(shell: roost.Roost, answers: List[str], capsys: pytest.CaptureFixture) -> None:
    answers.append("Web")
    shell.dispatch("rename Internet")
    assert '[+] Renamed /Internet to "Web"' in _out(capsys)
    assert shell.session.index.has_group(CanonicalPath.of("Web"))


def test_mkdir_offers_save_for_store_with_file(shell: roost.Roost, answers: List[str],
                                               tmp_path: Path) -> None:
    path = tmp_path / "test.roost"
    shell.session.save_as(path, "pw")
    answers.append("y")
    shell.dispatch("mkdir Work")
    assert not shell.session.has_changed
    assert not answers


# ==============================================================================
# ENTRIES
# ==============================================================================


def test_new_entry(shell: roost.Roost, answers: List[str], capsys: pytest.CaptureFixture) -> None:
    answers.extend(["Bank", "user", "g12", "https://bank.example", "line one", "."])
    shell.dispatch("new /eMail")

    entry = shell.session.locator.locate("/eMail/Bank")
    assert entry.username == "user"
    assert len(entry.password) == 12
    assert entry.notes == "line one"
    assert '[+] Entry "Bank" created in /eMail' in _out(capsys)


def test_new_entry_with_title_in_path(shell: roost.Roost, answers: List[str]) -> None:
    answers.extend(["user", "secret", "secret", "", "."])
    shell.dispatch("new /eMail/Hotmail")
    entry = shell.session.locator.locate("/eMail/Hotmail")
    assert entry.password == "secret"


def test_new_entry_password_mismatch_asks_again(shell: roost.Roost, answers: List[str],
                                                capsys: pytest.CaptureFixture) -> None:
    answers.extend(["Bank", "user", "one", "two", "pw", "pw", "", "."])
    shell.dispatch("new /eMail")
    assert "Entries mismatched" in _out(capsys)
    assert shell.session.locator.locate("/eMail/Bank").password == "pw"


def test_new_entry_at_root(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("new")
    assert "[-] Entries cannot be made in the root path." in _out(capsys)


def test_show(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("show /eMail/Gmail")
    out = _out(capsys)
    assert "Title: Gmail" in out
    assert " Pass: ********" in out

    shell.dispatch("show -f -a /eMail/Gmail")
    out = _out(capsys)
    assert " Pass: hunter2" in out
    assert " Made: " in out


def test_show_by_number(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("ls /Internet")
    _out(capsys)
    shell.dispatch("show 1")
    assert "Title: item10" in _out(capsys)


def test_show_escaped_title(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("show personal/Comcast\\/Xfinity")
    out = _out(capsys)
    assert "Title: Comcast/Xfinity" in out
    assert " Path: /personal/" in out


def test_show_usage(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("show -f -a")
    assert "[-] Usage: show" in _out(capsys)


def test_edit_keeps_blank_fields(shell: roost.Roost, answers: List[str]) -> None:
    answers.extend(["", "bob", "", "", ""])
    shell.dispatch("edit /eMail/Gmail")

    entry = shell.session.locator.locate("/eMail/Gmail")
    assert entry.username == "bob"
    assert entry.password == "hunter2"
    backup = shell.session.db.root_group_titled(config.BACKUP_GROUP)
    assert [e.username for e in backup.entries] == ["alice"]


def test_edit_search_result_edits_original(shell: roost.Roost, answers: List[str]) -> None:
    shell.session.find("gmail")
    answers.extend(["y", "", "", "", "https://gmail.com", ""])
    shell.dispatch(f"edit /{config.FOUND_DIR}/Gmail")
    assert shell.session.locator.locate("/eMail/Gmail").url == "https://gmail.com"


def test_rm(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("rm /eMail/Yahoo")
    assert '[+] Removed "Yahoo"' in _out(capsys)
    assert not shell.session.index.has_entry(CanonicalPath.of("eMail", "Yahoo"))


def test_mv_warns_on_collision(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    email = shell.session.db.root_group_titled("eMail")
    shell.session.db.add_entry(email.id, Entry(title="item2"))
    shell.session.refresh()
    _out(capsys)

    shell.dispatch("mv /eMail/item2 /Internet")
    out = _out(capsys)
    assert '[!] An entry titled "item2" already exists in /Internet' in out
    assert "[+] Moved /eMail/item2 to /Internet" in out


def test_cp(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("copy /eMail/Gmail /Internet")
    assert "[+] Copied to /Internet/Gmail" in _out(capsys)
    assert shell.session.locator.locate("/Internet/Gmail").username == "alice"


def test_clone_edits_the_copy(shell: roost.Roost, answers: List[str]) -> None:
    answers.extend(["", "bob", "", "", ""])
    shell.dispatch("clone /eMail/Gmail /eMail/Gmail2")

    assert shell.session.locator.locate("/eMail/Gmail2").username == "bob"
    assert shell.session.locator.locate("/eMail/Gmail").username == "alice"
    assert shell.session.db.root_group_titled(config.BACKUP_GROUP) is None


def test_clone_dropped_when_edit_fails(shell: roost.Roost, answers: List[str],
                                      capsys: pytest.CaptureFixture) -> None:
    answers.extend(["Yahoo", "", "", "", ""])
    shell.dispatch("clone /eMail/Gmail /eMail/Gmail2")

    assert '[-] An entry titled "Yahoo" is already in path.' in _out(capsys)
    assert not shell.session.index.has_entry(CanonicalPath.of("eMail", "Gmail2"))
    assert not shell.session.has_changed


def test_show_both_entries_after_mv_collision(shell: roost.Roost,
                                              capsys: pytest.CaptureFixture) -> None:
    """Both same-titled entries stay reachable by listing number."""
    internet = shell.session.db.root_group_titled("Internet")
    shell.session.db.add_entry(internet.id, Entry(title="Yahoo", username="bob"))
    shell.session.refresh()
    shell.dispatch("mv /eMail/Yahoo /Internet")
    shell.dispatch("cd /Internet")
    shell.dispatch("ls")
    _out(capsys)

    shell.dispatch("show 2")
    out = _out(capsys)
    assert "Uname: bob" in out
    assert " Path: /Internet/" in out
    assert "[-]" not in out

    shell.dispatch("show 3")
    assert "Uname: alice" in _out(capsys)


def test_find(shell: roost.Roost, answers: List[str], capsys: pytest.CaptureFixture) -> None:
    answers.append("n")
    shell.dispatch("find gmail")
    assert f" - 1 matches found and placed into /{config.FOUND_DIR}/" in _out(capsys)

    shell.dispatch("find nothing-like-this")
    assert "No matches." in _out(capsys)


def test_find_all_fields_lists(shell: roost.Roost, answers: List[str],
                               capsys: pytest.CaptureFixture) -> None:
    answers.append("y")
    shell.dispatch("find -a alice")
    out = _out(capsys)
    assert " - 2 matches found" in out
    assert "0. Gmail" in out


def test_copy_password(shell: roost.Roost, monkeypatch: pytest.MonkeyPatch,
                       capsys: pytest.CaptureFixture) -> None:
    copied = []
    monkeypatch.setattr(pyperclip, "copy", copied.append)
    monkeypatch.setattr(pyperclip, "paste", lambda: "")
    shell.dispatch("xp /eMail/Gmail")
    shell.dispatch("xu /eMail/Gmail")
    shell.dispatch("xw /Internet/item2")
    shell.dispatch("xx")
    out = _out(capsys)

    assert copied == ["hunter2", "alice", ""]
    assert '"item2" has no URL' in out
    assert "[+] Clipboard cleared." in out


# ==============================================================================
# STORE FILES AND SHELL COMMANDS
# ==============================================================================


def test_saveas_and_open(shell: roost.Roost, answers: List[str], tmp_path: Path) -> None:
    path = tmp_path / "test.roost"
    answers.extend(["pw", "pw"])
    shell.dispatch(f"saveas {path}")
    assert path.exists()
    shell.session.release_lock()

    other = roost.Roost()
    answers.append("pw")
    other.dispatch(f"open {path}")
    assert other.session.index.has_entry(CanonicalPath.of("eMail", "Gmail"))


def test_open_wrong_passphrase(shell: roost.Roost, answers: List[str], tmp_path: Path,
                               capsys: pytest.CaptureFixture) -> None:
    path = tmp_path / "test.roost"
    shell.session.save_as(path, "pw")

    other = roost.Roost()
    answers.append("wrong")
    other.dispatch(f"open {path}")
    assert "[-] Cannot open:" in _out(capsys)
    assert other.session.store_path is None


def test_save_without_file(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("save")
    assert "saveas" in _out(capsys)


def test_passwd(shell: roost.Roost, answers: List[str], tmp_path: Path) -> None:
    path = tmp_path / "test.roost"
    shell.session.save_as(path, "pw")
    answers.extend(["pw", "new", "new", "y"])
    shell.dispatch("passwd")
    assert shell.session.master_passphrase() == "new"
    assert not shell.session.has_changed


def test_quit_with_unsaved_changes(shell: roost.Roost, answers: List[str]) -> None:
    shell.dispatch("mkdir Work")
    answers.append("n")
    shell.dispatch("quit")
    assert shell.running

    answers.append("y")
    shell.dispatch("exit")
    assert not shell.running


def test_close(shell: roost.Roost, answers: List[str], capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("mkdir Work")
    answers.append("y")
    shell.dispatch("close")
    assert "[+] Store closed" in _out(capsys)
    assert not shell.session.has_changed


def test_history(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.history.append_string("ls")
    shell.history.append_string("pwd")
    shell.dispatch("history")
    out = _out(capsys)
    assert out.index("1  ls") < out.index("2  pwd")

    shell.dispatch("history 1")
    out = _out(capsys)
    assert "2  pwd" in out
    assert "ls" not in out

    shell.dispatch("history -c")
    shell.dispatch("history")
    assert "pwd" not in _out(capsys)


def test_help_and_version(shell: roost.Roost, capsys: pytest.CaptureFixture) -> None:
    shell.dispatch("help mv")
    shell.dispatch("ver")
    out = _out(capsys)
    assert "Usage: mv <path|number> <group>" in out
    assert f"{config.APP_NAME} {config.VERSION}" in out


# ==============================================================================
# ENTRY POINT
# ==============================================================================


def _closed_input(*args, **kwargs):
    raise EOFError


def test_main_opens_store_and_releases_lock(session: Session, answers: List[str], tmp_path: Path,
                                            monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "test.roost"
    session.save_as(path, "pw")
    session.release_lock()

    monkeypatch.setattr(roost, "prompt", _closed_input)
    answers.append("pw")
    assert roost.main([str(path), "--histfile", str(tmp_path / "history")]) == 0
    assert not (tmp_path / "test.roost.lock").exists()


def test_main_without_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
                            capsys: pytest.CaptureFixture) -> None:
    monkeypatch.setattr(roost, "prompt", _closed_input)
    assert roost.main(["--histfile", str(tmp_path / "history")]) == 0
    assert "Roost store secured" in _out(capsys)
