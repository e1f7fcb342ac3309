# cxxfront/config.py
"""Front-end options."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from cxxfront.tokens import LanguageMode

__all__ = ["FrontendConfig"]


@dataclass
class FrontendConfig:
    """Options for one parse.

    ``auto_detect_window`` is the number of leading tokens scanned for C++
    markers when ``mode`` is ``AUTO``.  ``max_errors`` of ``None`` means no
    limit.
    """

    mode: LanguageMode = LanguageMode.AUTO
    keep_comments: bool = False
    auto_detect_window: int = 1000
    max_errors: Optional[int] = None

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the config is usable."""
        problems: List[str] = []
        if not isinstance(self.mode, LanguageMode):
            problems.append(f"mode must be a LanguageMode, got {self.mode!r}")
        if self.auto_detect_window <= 0:
            problems.append(f"auto_detect_window must be positive, got {self.auto_detect_window}")
        if self.max_errors is not None and self.max_errors < 0:
            problems.append(f"max_errors must not be negative, got {self.max_errors}")
        return problems
