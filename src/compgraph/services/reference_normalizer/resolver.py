"""
Resolver collaborators for file-path component references.

A resolver turns ``{"ref": "Tasks/foo.json"}`` into the identifying fields
of the component stored in that file.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from ...shared import Settings, get_logger, get_settings


@runtime_checkable
class ComponentResolver(Protocol):
    """Collaborator interface used by the normalizer for file references."""

    def resolve(self, ref: Dict[str, Any], component_type: str) -> Optional[Dict[str, Any]]:
        """
        Return ``{key, domain, flow, version}`` of the referenced component,
        or None when it cannot be found.
        """
        ...


class FileComponentResolver:
    """
    Resolves file references against a workspace directory.

    The path is tried relative to the workspace root first, then by file name
    inside each search directory configured for the component type. Results
    are cached per instance.
    """

    def __init__(self, base_path: Path, settings: Optional[Settings] = None):
        self.base_path = Path(base_path)
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self._cache: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}

    def resolve(self, ref: Dict[str, Any], component_type: str) -> Optional[Dict[str, Any]]:
        ref_path = ref.get("ref") if isinstance(ref, dict) else None
        if not isinstance(ref_path, str) or not ref_path.strip():
            return None

        cache_key = (component_type, ref_path)
        if cache_key in self._cache:
            return self._cache[cache_key]

        component = None
        for candidate in self._candidate_paths(ref_path, component_type):
            component = self._read_component(candidate)
            if component is not None:
                break

        self._cache[cache_key] = component
        return component

    def clear_cache(self) -> None:
        self._cache.clear()

    def _candidate_paths(self, ref_path: str, component_type: str):
        relative = Path(ref_path.replace("\\", "/"))
        yield self.base_path / relative
        for search_dir in self.settings.search_paths_for(component_type):
            yield self.base_path / search_dir / relative.name

    def _read_component(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to read referenced component {path}: {e}")
            return None

        if not isinstance(data, dict) or not data.get("key") or not data.get("domain"):
            self.logger.debug(f"Referenced file {path} is not a component")
            return None

        return {
            "key": str(data["key"]),
            "domain": str(data["domain"]),
            "flow": data.get("flow"),
            "version": data.get("version"),
        }
