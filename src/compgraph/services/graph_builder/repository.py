"""
Filesystem access for graph building.

Discovery is sorted so a scan is reproducible; reads run on a thread pool
but results come back in discovery order.
"""

import fnmatch
import json
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ...shared import Settings, get_logger, get_settings


# (path, parsed document or None, skip reason or None, detail or None)
ReadOutcome = Tuple[Path, Optional[Dict[str, Any]], Optional[str], Optional[str]]


class ComponentFileRepository:
    """
    Reads component JSON files from a workspace.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

    def scan_json_files(self, directory: Path) -> List[Path]:
        """
        Recursively list ``.json`` files under a directory in sorted order.

        Hidden and excluded directories are not descended into, files
        matching an exclude pattern are dropped, and symlinked directories
        are not followed.
        """
        found: List[Path] = []
        max_depth = self.settings.max_scan_depth

        def walk(current: Path, depth: int) -> None:
            try:
                entries = sorted(os.scandir(current), key=lambda entry: entry.name)
            except OSError as e:
                self.logger.warning(f"Cannot scan {current}: {e}")
                return

            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name.startswith(".") or entry.name in self.settings.exclude_dirs:
                        continue
                    if max_depth is None or depth < max_depth:
                        walk(Path(entry.path), depth + 1)
                elif entry.is_file() and entry.name.endswith(".json"):
                    if self._is_excluded(entry.name):
                        continue
                    found.append(Path(entry.path))

        if Path(directory).is_dir():
            walk(Path(directory), 0)
        return found

    def _is_excluded(self, file_name: str) -> bool:
        return any(fnmatch.fnmatch(file_name, pattern) for pattern in self.settings.exclude_patterns)

    def read_component(self, path: Path) -> ReadOutcome:
        """Read and parse one file; failures are reported, not raised."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return path, None, "unreadable", str(e)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return path, None, "invalid_json", str(e)

        if not isinstance(data, dict):
            return path, None, "not_an_object", f"top-level JSON value is {type(data).__name__}"

        return path, data, None, None

    def read_components(self, paths: List[Path]) -> List[ReadOutcome]:
        """Read many files concurrently; the result keeps the order of ``paths``."""
        if not paths:
            return []
        workers = min(self.settings.max_workers, len(paths))
        if workers <= 1:
            return [self.read_component(path) for path in paths]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.read_component, paths))
