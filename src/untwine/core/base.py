"""Base classes for configuration models.

Kept apart from config.py and log.py so both can import them
without a cycle:
- Closeable Protocol for resource cleanup
- BaseCloseable for the close() cascade
- BaseConfig as the marker for configuration sections
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Protocol for objects that support close()."""

    def close(self) -> None:
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields.

    Usable as a context manager. Closing walks every field and
    calls close() on children that have it, continuing past
    children that fail:

    State.__exit__() → Config.close() → Logger.close() → Sink.close()
    """

    def close(self):
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None:
                continue

            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    print(
                        f"Warning: Error closing {field_name}: {e}",
                        file=sys.stderr,
                    )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Base class for configuration sections (YAML/env/CLI)."""

    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig"]
