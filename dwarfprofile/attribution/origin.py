"""Origin resolution — find the node that canonically declares some code.

Inlined instances point at their abstract origin, out-of-line definitions
at their specification, and those may point further still. The chain is
followed until it ends, dangles, or loops.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from dwarfprofile.model.nodes import CodeNode

logger = logging.getLogger(__name__)


def _reference(node: CodeNode) -> int | None:
    if node.origin is not None:
        return node.origin
    return node.specification


def resolve_declaration(
    node: CodeNode, nodes: Mapping[int, CodeNode]
) -> tuple[CodeNode, str]:
    """Return the declaring node for ``node`` and its tag.

    Never fails: a dangling reference or a cycle stops the walk and the last
    node that could be resolved is returned.
    """
    current = node
    seen = {node.offset}

    while True:
        ref = _reference(current)
        if ref is None:
            break

        target = nodes.get(ref)
        if target is None:
            logger.debug(
                "node %#x refers to missing node %#x, keeping %#x",
                node.offset, ref, current.offset,
            )
            break

        if target.offset in seen:
            logger.warning(
                "reference cycle through %#x while resolving %#x", ref, node.offset
            )
            break

        seen.add(target.offset)
        current = target

    return current, current.tag
