"""
Roost configuration constants.

Every tunable lives here as a module-level constant. A handful can be
overridden from the environment so tests and scripted sessions do not
need to patch the modules that read them.
"""

import os
from pathlib import Path

APP_NAME = "roost"
VERSION = "1.0.0"

# ==============================================================================
# RESERVED GROUP TITLES
# ==============================================================================

# Root-level group holding search results; never written to disk
FOUND_DIR = "_found"

# Root-level group receiving recycled copies of removed/edited entries
BACKUP_GROUP = "Backup"

# Trash group some stores carry; skipped by searches like Backup
RECYCLE_BIN = "Recycle Bin"

# Groups a brand-new store starts with
DEFAULT_GROUPS = ("eMail", "Internet")

# ==============================================================================
# FILES
# ==============================================================================

LOCK_SUFFIX = ".lock"
SAVE_TEMP_SUFFIX = "-savetmp"
DEFAULT_STORE_SUFFIX = ".roost"

HISTORY_FILE = Path(os.environ.get("ROOST_HISTFILE", Path.home() / ".roost_history"))

# ==============================================================================
# PASSWORDS AND CLIPBOARD
# ==============================================================================

DEFAULT_PASSWORD_LENGTH = 20
MIN_GENERATED_LENGTH = 1
MAX_GENERATED_LENGTH = 50

CLIPBOARD_TIMEOUT = int(os.environ.get("ROOST_CLIPBOARD_TIMEOUT", "30"))

# ==============================================================================
# KEY DERIVATION (Argon2id)
# ==============================================================================

KDF_TIME_COST = int(os.environ.get("ROOST_KDF_TIME_COST", "2"))
KDF_MEMORY_COST = int(os.environ.get("ROOST_KDF_MEMORY_COST", "102400"))  # KiB
KDF_LANES = int(os.environ.get("ROOST_KDF_LANES", "4"))

# Prefix the secret guard stores ahead of the passphrase
SECRET_MARKER = b"CLEAR:"

# ==============================================================================
# FIELD LIMITS
# ==============================================================================

MAX_TITLE_LENGTH = 255
MAX_FIELD_LENGTH = 1024
MAX_NOTES_LENGTH = 65536
