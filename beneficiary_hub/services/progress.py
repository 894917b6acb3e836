from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per bulk operation, advanced once per finished chunk. Outside a
TTY (CI, redirected output) nothing is drawn so logs stay free of control
sequences.
"""

__all__ = [
    "ChunkProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ChunkProgress:
    """Progress bar over the items of a chunked operation."""

    def __init__(self, total_items: int, *, description: str = "Processing", enabled: bool | None = None) -> None:
        self.total_items = total_items
        self.description = description
        self.done = 0

        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_items,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, items: int) -> None:
        self.done += items
        if self.enabled and self.pbar is not None:
            self.pbar.update(items)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ChunkProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
