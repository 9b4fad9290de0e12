"""Conversation branch tree.

Pure read-side helpers that reconstruct the branch forest implied by
``parent_id`` links over a flat, unordered collection of conversations.

A conversation whose ``parent_id`` does not resolve (e.g. the parent was
deleted) is promoted to a root, so every input conversation appears in the
returned forest exactly once.  Cyclic ``parent_id`` chains cannot be placed in
a forest and raise ``CyclicLineageError``.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from branchgpt.chat_runtime.models.conversation import ConversationNode

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from branchgpt.chat_runtime.models.conversation import Conversation


class CyclicLineageError(RuntimeError):
    """Raised when ``parent_id`` links form a cycle."""


def build_tree(conversations: Iterable[Conversation]) -> list[ConversationNode]:
    """Build the branch forest and return its root nodes.

    Children keep the relative order of the input collection.  Depths are
    assigned top-down from the roots after all links are in place, so they do
    not depend on input order.
    """
    nodes = {conv.id: ConversationNode(conversation=conv) for conv in conversations}

    roots: list[ConversationNode] = []
    for node in nodes.values():
        parent_id = node.conversation.parent_id
        parent = nodes.get(parent_id) if parent_id is not None else None
        if parent is None:
            # No parent, or a dangling reference: treat as root.
            roots.append(node)
        else:
            parent.children.append(node)

    placed = 0
    queue: deque[ConversationNode] = deque(roots)
    while queue:
        node = queue.popleft()
        placed += 1
        for child in node.children:
            child.depth = node.depth + 1
            queue.append(child)

    if placed != len(nodes):
        msg = f"{len(nodes) - placed} conversation(s) are part of a parent_id cycle"
        raise CyclicLineageError(msg)

    return roots


def flatten(roots: Iterable[ConversationNode]) -> list[ConversationNode]:
    """Return every node of the forest in depth-first pre-order."""
    result: list[ConversationNode] = []
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result


def ancestors(conversation_id: str, conversations: Sequence[Conversation]) -> list[Conversation]:
    """Return the ancestors of a conversation, root first, nearest parent last.

    Stops at the first unresolved ``parent_id``.  Raises
    ``CyclicLineageError`` if the walk is longer than the collection.
    """
    by_id = {conv.id: conv for conv in conversations}
    limit = len(by_id)

    result: list[Conversation] = []
    current = by_id.get(conversation_id)
    while current is not None and current.parent_id is not None:
        parent = by_id.get(current.parent_id)
        if parent is None:
            break
        if len(result) >= limit:
            msg = f"parent_id chain of conversation '{conversation_id}' does not terminate"
            raise CyclicLineageError(msg)
        result.append(parent)
        current = parent

    result.reverse()
    return result


def descendants(conversation_id: str, conversations: Sequence[Conversation]) -> list[Conversation]:
    """Return every conversation below *conversation_id*, depth-first pre-order."""
    children: dict[str, list[Conversation]] = {}
    for conv in conversations:
        if conv.parent_id is not None:
            children.setdefault(conv.parent_id, []).append(conv)

    result: list[Conversation] = []
    seen = {conversation_id}
    stack = list(reversed(children.get(conversation_id, [])))
    while stack:
        conv = stack.pop()
        if conv.id in seen:
            msg = f"conversation '{conv.id}' is its own ancestor"
            raise CyclicLineageError(msg)
        seen.add(conv.id)
        result.append(conv)
        stack.extend(reversed(children.get(conv.id, [])))
    return result


def count_messages(conversation_id: str, conversations: Sequence[Conversation]) -> int:
    """Messages in a conversation plus those in all of its descendants.

    Returns 0 if the conversation does not exist.
    """
    conversation = next((conv for conv in conversations if conv.id == conversation_id), None)
    if conversation is None:
        return 0
    return len(conversation.messages) + sum(len(d.messages) for d in descendants(conversation_id, conversations))
