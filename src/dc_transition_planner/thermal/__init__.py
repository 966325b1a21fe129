"""Cooling efficiency: weather-driven facility PUE."""

from .pue_predictor import PUEPredictor, PUEProfile, pue_for_temperature

__all__ = [
    "PUEPredictor",
    "PUEProfile",
    "pue_for_temperature",
]
