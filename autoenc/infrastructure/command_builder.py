import logging
import re
import shlex
import subprocess
from pathlib import Path

from autoenc.infrastructure.platform_utils import IS_WINDOWS

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(source|destination)\}")


def quote_path(path: Path) -> str:
    """Quotes one path as a single command-line token for the current OS."""
    if IS_WINDOWS:
        return subprocess.list2cmdline([str(path)])
    return shlex.quote(str(path))


def build_encoder_command(template: str, source: Path, destination: Path) -> str:
    """Substitutes {source} and {destination} in the template with quoted paths.

    Substitution is a single pass, so a placeholder-like sequence inside a
    file name is never expanded a second time.
    """
    values = {
        "source": quote_path(source),
        "destination": quote_path(destination),
    }
    command = _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
    logger.debug(f"ENCODER_CMD: {command}")
    return command


class EncoderCommandBuilder:
    """Binds the configured command template."""

    def __init__(self, template: str):
        self.template = template

    def build(self, source: Path, destination: Path) -> str:
        return build_encoder_command(self.template, source, destination)
