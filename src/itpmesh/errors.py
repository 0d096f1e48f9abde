"""Custom exception hierarchy for the itpmesh converter."""


class ItpError(Exception):
    """Base exception for all itpmesh errors."""


class ParseError(ItpError):
    """Raised when YAML parsing or schema deserialization fails."""


class ValidationError(ItpError):
    """Raised when semantic validation fails (bad refs, cycles, ranges)."""


class ConversionError(ItpError):
    """Raised when the mesh pipeline is handed inconsistent data."""


class ExportError(ItpError):
    """Raised when writing ITP or GLB output fails."""
