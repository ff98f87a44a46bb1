"""Simulated robot arena, image-processing functions and a marker tracker."""

__version__ = "0.1.0"