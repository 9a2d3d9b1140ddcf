"""
Layer tree flattening.

Turns the nested layer tree into a single depth-first (pre-order) list.
Ancestry is kept as integer indices into that list.
"""

import logging
from typing import List, Optional, Sequence
from uuid import uuid4

from psdbridge.models.document import FlatLayer, LayerNode

logger = logging.getLogger(__name__)


def new_layer_id() -> str:
    """Generate a unique layer identifier for one conversion call."""
    return f"layer_{uuid4().hex[:12]}"


def flatten_layers(
    nodes: Optional[Sequence[LayerNode]],
    parent_index: Optional[int] = None,
    result: Optional[List[FlatLayer]] = None,
) -> List[FlatLayer]:
    """
    Flatten sibling layer nodes (and their descendants) depth-first.

    Each node is appended with its own index equal to the current output
    length, then its children are flattened with that index as their parent.
    The source nodes are never modified.

    Args:
        nodes: Sibling nodes; None or empty is treated as no nodes
        parent_index: Index of the already-emitted parent, None for top level
        result: List to append to (a new one is created when omitted)

    Returns:
        The flattened list (the same object as ``result`` when given)
    """
    if result is None:
        result = []

    for original_index, node in enumerate(nodes or []):
        own_index = len(result)
        result.append(
            FlatLayer(
                node=node,
                index=own_index,
                original_index=original_index,
                parent_index=parent_index,
                id=new_layer_id(),
            )
        )
        if node.children:
            flatten_layers(node.children, own_index, result)

    return result
