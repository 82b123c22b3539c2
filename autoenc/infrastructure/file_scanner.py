import os
from pathlib import Path
from typing import Generator, List, Tuple


def _raise_walk_error(error: OSError) -> None:
    raise error


class FileScanner:
    """Recursively walks a source tree, skipping archive directories.

    A candidate is a file whose name ends in the source extension (compared
    case-insensitively) and that does not live under an archive directory.
    """

    def __init__(self, source_extension: str, archive_dir_name: str):
        ext = source_extension if source_extension.startswith(".") else f".{source_extension}"
        self.source_extension = ext.lower()
        self.archive_dir_name = archive_dir_name

    def is_archive_dir(self, path: Path) -> bool:
        return path.name == self.archive_dir_name

    def is_candidate(self, path: Path) -> bool:
        name = path.name.lower()
        if len(name) <= len(self.source_extension) or not name.endswith(self.source_extension):
            return False
        return self.archive_dir_name not in path.parent.parts

    def walk(self, root_dir: Path) -> Generator[Tuple[Path, List[Path]], None, None]:
        """Yields (directory, candidate files) top-down in sorted order.

        Archive directories are neither yielded nor descended into. Walk
        errors (missing root, permission denied) are raised, not skipped.
        """
        if self.is_archive_dir(Path(root_dir)):
            return
        for root, dirs, files in os.walk(str(root_dir), onerror=_raise_walk_error):
            root_path = Path(root)

            # Deterministic traversal; never enter an archive directory
            dirs[:] = sorted(d for d in dirs if d != self.archive_dir_name)

            candidates = [root_path / name for name in sorted(files) if self.is_candidate(root_path / name)]
            yield root_path, candidates
