"""Dataset identifiers and the endpoints they address."""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Identifier:
    """A dataset addressed either by persistent identifier or by database id."""
    value: str
    persistent: bool = True

    @classmethod
    def persistent_id(cls, pid: str) -> "Identifier":
        return cls(pid, persistent=True)

    @classmethod
    def numeric(cls, dataset_id) -> "Identifier":
        return cls(str(dataset_id), persistent=False)

    @classmethod
    def parse(cls, value: str) -> "Identifier":
        """Treat all-digit values as database ids, anything else as a persistent id."""
        value = value.strip()
        if not value:
            raise ValueError("dataset identifier must not be empty")
        if value.isdigit():
            return cls.numeric(value)
        return cls.persistent_id(value)

    def endpoint(self, action: str) -> Tuple[str, Optional[Dict[str, str]]]:
        """Return ``(path, query parameters)`` for a dataset sub-resource."""
        if self.persistent:
            return f"api/datasets/:persistentId/{action}", {"persistentId": self.value}
        return f"api/datasets/{self.value}/{action}", None

    def __str__(self) -> str:
        return self.value
