"""sbprofile constants: filesystem layout, catalogue limits, and exit codes."""

from __future__ import annotations

from enum import IntEnum

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    PARAMETER_ERROR = 3
    ASSEMBLY_ERROR = 4


# ---------------------------------------------------------------------------
# Filesystem layout
# ---------------------------------------------------------------------------

SBPROFILE_DIR_NAME = ".sbprofile"
CONFIG_FILENAME = "config.toml"
CONFIG_ENV_VAR = "SBPROFILE_CONFIG"

# ---------------------------------------------------------------------------
# Profile language
# ---------------------------------------------------------------------------

SBPL_VERSION = 1
DEFAULT_OPERATION = "default"
NO_LOG_MODIFIER = "no-log"

# ---------------------------------------------------------------------------
# Content-process catalogue
# ---------------------------------------------------------------------------

MAX_CONTENT_TESTING_READ_PATHS = 4
CONTENT_LIBRARY_NAME = "content"

WASM_MODULE_NAME = "rlbox"
