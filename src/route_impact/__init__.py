"""Geospatial matching of traffic disruptions to affected bus routes."""

__version__ = "0.1.0"
