"""
Error taxonomy for the roof analysis service.

Collaborator failures are raised as these types and absorbed by the
pipeline per zoom level or per estimator. Only ConfigurationError is
meant to reach the process (at startup).
"""


class RoofAIError(Exception):
    """Base class for all service errors."""


class ConfigurationError(RoofAIError):
    """Missing credentials or invalid settings."""


class GeocodeError(RoofAIError):
    """Address could not be resolved to coordinates."""


class ImageFetchError(RoofAIError):
    """Satellite image could not be fetched or decoded."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class VisionAnalysisError(RoofAIError):
    """Vision collaborator failed or returned an unusable response."""


class InsufficientPropertyData(RoofAIError):
    """Property record lacks the building size needed for estimation."""
