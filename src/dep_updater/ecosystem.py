"""Closed set of supported packaging ecosystems."""

from enum import Enum


class Ecosystem(str, Enum):
    """Ecosystem identifiers wired into the static registries."""

    GO_MODULES = "go_modules"
    MAVEN = "maven"

    @classmethod
    def from_value(cls, value: "str | Ecosystem") -> "Ecosystem":
        """Look up an ecosystem by its identifier, failing loudly if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(e.value for e in cls)
            raise ValueError(
                f"Unsupported ecosystem: {value!r} (supported: {supported})"
            ) from None
