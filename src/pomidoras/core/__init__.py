"""Core countdown functionality."""

from pomidoras.core.timer import Phase, TimerEngine, TimerStatus

__all__ = ["Phase", "TimerEngine", "TimerStatus"]
