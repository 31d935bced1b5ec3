"""
Roost Modules
"""

from .errors import *
from .paths import *
from .database import *
from .index import *
from .navigator import *
from .locator import *
from .completion import *
from .crypto import *
from .lockfile import *
from .session import *
