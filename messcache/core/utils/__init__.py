from .clock import Clock, Sleep, now_ms

__all__ = ["Clock", "Sleep", "now_ms"]
