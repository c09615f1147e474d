"""Feature selection to cargo flag expressions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

ALL_FEATURES_FLAG: Final[str] = "--all-features"


def flags_for(features: Sequence[str] | None) -> str:
    """Return the cargo flags for a feature selection.

    ``None`` (unspecified) enables every feature, an empty selection builds with
    default features only, and a populated selection is passed through verbatim in
    the given order.
    """

    if features is None:
        return ALL_FEATURES_FLAG
    if not features:
        return ""
    return f"--features {','.join(features)}"


def command(*parts: str) -> str:
    """Join command fragments, dropping empty ones such as an empty flag expression."""

    return " ".join(part for part in parts if part)


__all__ = ["ALL_FEATURES_FLAG", "command", "flags_for"]
