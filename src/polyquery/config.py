# config.py
from dataclasses import dataclass, replace
from typing import Self


@dataclass(frozen=True)
class Config:
    """Immutable configuration object."""

    # lease requested on every continuation call of a scrolling backend
    scroll_timeout: str = "1m"
    scroll_page_size: int = 1000
    warn_on_count_materialization: bool = True
    warn_on_unclosed_dataset: bool = True
    stream_chunk_size: int = 1024 * 1024

    def with_updates(self, **kwargs) -> Self:
        """Create a new Config instance with updated values."""
        return replace(self, **kwargs)

    def merge(self, other: "Config") -> "Config":
        """Merge with another config, other takes precedence."""
        if not isinstance(other, Config):
            raise TypeError("Can only merge with another Config instance")

        defaults = Config()
        updates = {}
        for field_name in self.__dataclass_fields__:
            other_value = getattr(other, field_name)
            if other_value != getattr(defaults, field_name):
                updates[field_name] = other_value

        return self.with_updates(**updates)


# Module-level default config - created at import time
DEFAULT_CONFIG = Config()
