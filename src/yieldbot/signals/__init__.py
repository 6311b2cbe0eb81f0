"""Signal analysis -- reference asset trend detection used as an auxiliary gate."""

from yieldbot.signals.trend import MIN_SAMPLES, TrendDetector, is_downtrend

__all__ = ["MIN_SAMPLES", "TrendDetector", "is_downtrend"]
