"""Change watching: filesystem events, debouncing and classification."""

from __future__ import annotations

from .classifier import ChangeCategory, ChangeClassifier, Classification
from .observer import FileWatcher
from .queue import ChangeQueue

__all__ = [
    "ChangeCategory",
    "ChangeClassifier",
    "ChangeQueue",
    "Classification",
    "FileWatcher",
]
