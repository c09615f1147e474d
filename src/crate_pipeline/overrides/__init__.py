"""Override document loading and path-qualified lookups with defaults."""

from crate_pipeline.overrides.document import (
    OverrideDocument,
    OverrideDocumentError,
    ResolvedOverrides,
    combine_features,
    resolve_overrides,
)
from crate_pipeline.overrides.tree import (
    MISSING,
    ListNode,
    Node,
    ObjectNode,
    ScalarNode,
    from_python,
    navigate,
)

__all__ = [
    "MISSING",
    "ListNode",
    "Node",
    "ObjectNode",
    "OverrideDocument",
    "OverrideDocumentError",
    "ResolvedOverrides",
    "ScalarNode",
    "combine_features",
    "from_python",
    "navigate",
    "resolve_overrides",
]
