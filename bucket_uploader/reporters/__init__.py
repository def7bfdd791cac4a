"""Reporters for transfer progress and results."""

from .base import ProgressObserver, Reporter
from .console import ConsoleReporter

__all__ = ["ProgressObserver", "Reporter", "ConsoleReporter"]
