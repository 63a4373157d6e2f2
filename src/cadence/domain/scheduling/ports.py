"""
Ports (interfaces) for record storage.

The engine never persists anything; outer surfaces that do (the CLI)
depend on this abstraction rather than on a concrete file format.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from .models import Progress


class RecordStore(ABC):
    """
    Port for loading and saving progress records keyed by item id.

    Implementations:
        - FileRecordStore: JSON or YAML document on disk.
    """

    @abstractmethod
    def load(self) -> dict[str, dict]:
        """
        Read every stored record.

        Returns:
            Item id -> raw record mapping (not yet normalized).
        """
        pass

    @abstractmethod
    def save(self, records: Mapping[str, Progress | dict]) -> None:
        """Write records back, replacing the stored document."""
        pass
