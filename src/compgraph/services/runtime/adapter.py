"""
Boundary for runtime graph suppliers.

Whatever fetches a deployed environment's components only has to return a
``ComponentGraph`` whose nodes and edges satisfy the usual graph invariants;
the transport is up to the adapter.
"""

from typing import Iterable, Optional, Protocol, runtime_checkable

from ...shared import ComponentGraph, ComponentType


@runtime_checkable
class RuntimeAdapter(Protocol):
    """Supplies the graph of a deployed environment."""

    def fetch_graph(
        self,
        environment: str,
        domain: Optional[str],
        include_types: Optional[Iterable[ComponentType]] = None,
        compute_hashes: bool = False,
    ) -> ComponentGraph:
        """Fetch every component of ``domain`` deployed in ``environment``."""
        ...

    def test_connection(self, environment: str) -> bool:
        """True when the environment can be reached."""
        ...
