"""Carpool schedule-slot capacity and visibility engine."""

__version__ = "0.1.0"
