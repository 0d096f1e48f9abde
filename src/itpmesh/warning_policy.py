"""Warning policy controls for itpmesh diagnostics."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

from itpmesh.errors import ValidationError

WARNING_CODES: dict[str, str] = {
    "W01": "blend target control-point count differs from the base mesh; target skipped",
    "W02": "bone limit exceeded; the extra bone's influences are dropped",
    "W03": "skin cluster has no link node; bone falls back to identity bind pose",
    "W04": "blend target normal/tangent element is not mapped by control point",
}

KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)


class ItpWarning(UserWarning):
    """Warning with a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Controls how individual warning codes are handled."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()


def emit_warning(code: str, message: str, *, policy: WarningPolicy | None = None) -> None:
    """Emit a diagnostic, respecting the active policy.

    - If code is in ``policy.suppress``, the diagnostic is dropped.
    - If code is in ``policy.warn_as_error``, a ``ValidationError`` is raised.
    - Otherwise an ``ItpWarning`` is issued via ``warnings.warn``.
    """
    if code not in KNOWN_CODES:
        raise ValueError(f"Unknown warning code: {code!r}")
    if policy is not None:
        if code in policy.suppress:
            return
        if code in policy.warn_as_error:
            raise ValidationError(f"[{code}] {message}")

    warnings.warn(ItpWarning(code, message), stacklevel=3)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse a comma-separated string of W-codes.

    ``all`` selects every known code. Raises ``ValueError`` for unknown codes.
    """
    codes: set[str] = set()
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        if token.lower() == "all":
            codes.update(KNOWN_CODES)
            continue
        if token not in KNOWN_CODES:
            raise ValueError(f"Unknown warning code: {token!r} (known: {sorted(KNOWN_CODES)})")
        codes.add(token)
    return frozenset(codes)
