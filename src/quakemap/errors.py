"""Error types raised by the quake map pipeline stages."""
from __future__ import annotations


class QuakeMapError(Exception):
    """Base class for every failure the pipeline reports."""


class LoadError(QuakeMapError):
    """The earthquake file is missing, malformed or lacks a required column."""


class FetchError(QuakeMapError):
    """The station page could not be retrieved."""


class ParseError(QuakeMapError):
    """The station table has an unexpected shape or a non-numeric coordinate."""


class RenderError(QuakeMapError):
    """A map layer, legend or scale bar was configured incorrectly."""
