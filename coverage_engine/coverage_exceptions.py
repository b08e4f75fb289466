"""
Coverage Engine Specific Exceptions

One class per named failure kind so callers can tell "could not resolve
location" apart from absorbed per-tile failures without string matching.
"""
from typing import Optional


class CoverageEngineError(Exception):
    """Base exception for coverage engine errors"""
    pass


class CoverageConfigurationError(CoverageEngineError):
    """Error in coverage engine configuration"""
    pass


# Location resolution (abort the whole check)
class LocationResolutionError(CoverageEngineError):
    """Postal code could not be turned into a coordinate"""

    def __init__(self, zip_code: str, detail: str = ""):
        self.zip_code = zip_code
        self.detail = detail
        message = f"could not resolve location for {zip_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class GeocodeNotFound(LocationResolutionError):
    """Geocoding collaborator returned zero matches"""
    pass


class GeocodeUnavailable(LocationResolutionError):
    """Geocoding collaborator could not be reached"""
    pass


class DegenerateGrid(CoverageEngineError):
    """Tile grid cannot be built around the requested center"""
    pass


# Tower lookup (absorbed per tile)
class TileFetchError(CoverageEngineError):
    """Base class for failures of a single tile query"""

    def __init__(self, message: str, tile=None):
        self.tile = tile
        super().__init__(message)


class TileFetchTimeout(TileFetchError):
    """Transient failures persisted through every attempt for one tile"""

    def __init__(self, message: str, tile=None, attempts: int = 0,
                 last_error: Optional[BaseException] = None):
        super().__init__(message, tile)
        self.attempts = attempts
        self.last_error = last_error


class UpstreamRejected(TileFetchError):
    """Tower collaborator answered with an error status or error document"""

    def __init__(self, message: str, tile=None, status_code: Optional[int] = None,
                 body_snippet: str = ""):
        super().__init__(message, tile)
        self.status_code = status_code
        self.body_snippet = body_snippet[:300]


class UpstreamResponseError(TileFetchError):
    """Tower collaborator answered 200 with a body that is not a cell list"""
    pass


class FallbackUnavailable(CoverageEngineError):
    """Provider fallback collaborator could not be reached or parsed"""
    pass


class WhitelistEmpty(UserWarning):
    """Whitelist was built with zero entries; nothing can ever match"""
    pass
