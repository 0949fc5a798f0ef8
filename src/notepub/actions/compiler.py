"""IR to editor action list.

:class:`ActionCompiler` is pure and synchronous: it performs no I/O and
produces the same actions for the same nodes.  All image sources are
checked up front so that a document with an unresolvable image fails
before any browser work starts.

Usage::

    actions = ActionCompiler().compile(nodes)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from notepub.document.nodes import DocNode, NodeType, iter_nodes
from notepub.errors import NotePubConversionError

from .model import Action, ActionType

_LIST_KINDS: dict[NodeType, str] = {
    NodeType.BULLET_LIST: "bullet",
    NodeType.NUMBERED_LIST: "numbered",
    NodeType.TODO_LIST: "bullet",
}


class ActionCompiler:
    """Compile IR nodes into an ordered list of :class:`Action` values.

    Parameters
    ----------
    hoist_cover:
        When ``True`` (the default) the first image of the document is
        removed from the body and emitted as a leading
        ``set-cover-image``, followed by its caption as a paragraph.
    """

    def __init__(self, hoist_cover: bool = True) -> None:
        self._hoist_cover = hoist_cover

    def check(self, nodes: Iterable[DocNode]) -> None:
        """Raise :class:`NotePubConversionError` if an image has no source."""
        _check_image_sources(list(nodes))

    def compile(self, nodes: Iterable[DocNode]) -> list[Action]:
        """Return the action list for *nodes*.

        Raises
        ------
        NotePubConversionError
            If any image node has an empty source.
        """
        nodes = list(nodes)
        _check_image_sources(nodes)

        actions: list[Action] = []
        body = nodes
        if self._hoist_cover:
            cover_index = next(
                (i for i, node in enumerate(nodes) if node.type == NodeType.IMAGE),
                None,
            )
            if cover_index is not None:
                cover = nodes[cover_index]
                actions.append(Action(ActionType.SET_COVER_IMAGE, {"path": cover.content}))
                if cover.caption:
                    actions.append(Action(ActionType.INSERT_PARAGRAPH, {"text": cover.caption}))
                body = nodes[:cover_index] + nodes[cover_index + 1:]

        for node in body:
            actions.extend(self.compile_node(node))
        return actions

    def compile_node(self, node: DocNode) -> list[Action]:
        """Compile a single node without cover hoisting."""
        compiler = _NODE_COMPILERS.get(node.type)
        if compiler is None:
            return _paragraph(node.text or node.content)
        return compiler(self, node)

    # ------------------------------------------------------------------
    # Per-node compilers
    # ------------------------------------------------------------------

    def _compile_heading(self, node: DocNode) -> list[Action]:
        level = node.level or 2
        if level <= 2:
            return [Action(ActionType.INSERT_HEADING, {"text": node.text, "level": 2})]
        if level == 3:
            return [Action(ActionType.INSERT_HEADING, {"text": node.text, "level": 3})]
        return _paragraph(node.text)

    def _compile_paragraph(self, node: DocNode) -> list[Action]:
        return _paragraph(node.text)

    def _compile_list(self, node: DocNode) -> list[Action]:
        items: list[str] = []
        for item in node.children:
            text = item.text
            if node.type == NodeType.TODO_LIST:
                text = ("[x] " if item.checked else "[ ] ") + text
            items.append(text)
        if not items:
            return []
        return [Action(ActionType.INSERT_LIST, {"kind": _LIST_KINDS[node.type], "items": items})]

    def _compile_quote(self, node: DocNode) -> list[Action]:
        lines = [line for line in node.text.split("\n") if line.strip()]
        if not lines:
            return []
        return [Action(ActionType.INSERT_QUOTE, {"lines": lines})]

    def _compile_callout(self, node: DocNode) -> list[Action]:
        text = node.text
        if node.icon:
            text = f"{node.icon} {text}"
        lines = [line for line in text.split("\n") if line.strip()]
        if not lines:
            return []
        return [Action(ActionType.INSERT_QUOTE, {"lines": lines})]

    def _compile_code(self, node: DocNode) -> list[Action]:
        return [Action(ActionType.INSERT_CODE, {"text": node.content, "language": node.language})]

    def _compile_divider(self, node: DocNode) -> list[Action]:
        return [Action(ActionType.INSERT_DIVIDER)]

    def _compile_image(self, node: DocNode) -> list[Action]:
        actions = [Action(ActionType.INSERT_IMAGE, {"path": node.content})]
        if node.caption:
            actions.append(Action(ActionType.SET_CAPTION, {"text": node.caption}))
        return actions

    def _compile_table(self, node: DocNode) -> list[Action]:
        rows = [
            "| " + " | ".join(cell.text for cell in row.children) + " |"
            for row in node.children
        ]
        return _paragraph("\n".join(rows))

    def _compile_link_block(self, node: DocNode) -> list[Action]:
        actions = _paragraph(node.content)
        if node.caption:
            actions.extend(_paragraph(node.caption))
        return actions

    def _compile_unsupported(self, node: DocNode) -> list[Action]:
        return _paragraph(node.content)


# ------------------------------------------------------------------
# Node compiler dispatch table
# ------------------------------------------------------------------

_NodeCompiler = Callable[[ActionCompiler, DocNode], list[Action]]

_NODE_COMPILERS: dict[NodeType, _NodeCompiler] = {
    NodeType.HEADING: ActionCompiler._compile_heading,
    NodeType.PARAGRAPH: ActionCompiler._compile_paragraph,
    NodeType.BULLET_LIST: ActionCompiler._compile_list,
    NodeType.NUMBERED_LIST: ActionCompiler._compile_list,
    NodeType.TODO_LIST: ActionCompiler._compile_list,
    NodeType.QUOTE: ActionCompiler._compile_quote,
    NodeType.CALLOUT: ActionCompiler._compile_callout,
    NodeType.CODE: ActionCompiler._compile_code,
    NodeType.DIVIDER: ActionCompiler._compile_divider,
    NodeType.IMAGE: ActionCompiler._compile_image,
    NodeType.TABLE: ActionCompiler._compile_table,
    NodeType.BOOKMARK: ActionCompiler._compile_link_block,
    NodeType.EMBED: ActionCompiler._compile_link_block,
    NodeType.UNSUPPORTED: ActionCompiler._compile_unsupported,
}


def _paragraph(text: str) -> list[Action]:
    if not text.strip():
        return []
    return [Action(ActionType.INSERT_PARAGRAPH, {"text": text})]


def _check_image_sources(nodes: list[DocNode]) -> None:
    for index, node in enumerate(iter_nodes(nodes)):
        if node.type == NodeType.IMAGE and not node.content.strip():
            raise NotePubConversionError(
                message="Image node has no source",
                context={"node_type": node.type.value, "index": index},
            )
