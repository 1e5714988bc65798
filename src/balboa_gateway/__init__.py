"""Balboa Gateway - local REST API gateway for Balboa spa control units."""

__version__ = "0.1.0"
