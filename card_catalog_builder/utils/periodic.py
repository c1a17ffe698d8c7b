from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass
class EveryN:
    """
    Invoke a callback every N items (typically entities processed by a step).
    """

    every_n: int
    callback: Callable[[], None]

    def maybe(self, count: int) -> bool:
        if self.every_n <= 0:
            return False
        if count <= 0 or (count % self.every_n) != 0:
            return False
        self.callback()
        return True
