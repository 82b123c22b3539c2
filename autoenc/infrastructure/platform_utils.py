"""OS detection shared by the modules that talk to the OS directly."""

import sys

IS_WINDOWS: bool = sys.platform == "win32"
