import logging
import os
from pathlib import Path
from typing import List, Optional

class HousekeepingService:
    """Removes encoder temp files left behind by an encode that was killed mid-run."""

    def __init__(self, archive_dir_name: Optional[str] = None):
        self.archive_dir_name = archive_dir_name
        self.logger = logging.getLogger(__name__)

    def cleanup_temp_files(self, directory: Path, suffix: str) -> List[Path]:
        """Recursively removes files ending in suffix; returns the removed paths."""
        removed: List[Path] = []
        for root, dirs, files in os.walk(directory):
            if self.archive_dir_name:
                dirs[:] = [d for d in dirs if d != self.archive_dir_name]
            for file in files:
                if not file.endswith(suffix):
                    continue
                path = Path(root) / file
                try:
                    path.unlink()
                except OSError as e:
                    self.logger.warning(f"Could not remove stale temp file {path}: {e}")
                    continue
                self.logger.info(f"Removed stale temp file: {path}")
                removed.append(path)
        return removed
