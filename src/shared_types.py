"""Shared enums and types for celo-predict."""

from enum import StrEnum


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, value: "str | Direction") -> "Direction":
        """Case-insensitive parse. Raises ValueError on anything else."""
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid direction: {value!r}. Must be 'up' or 'down'")


class StoreBackend(StrEnum):
    SQLITE = "sqlite"
    MEMORY = "memory"
