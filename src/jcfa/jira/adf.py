"""Atlassian Document Format (ADF) plain-text renderer and builder.

Jira API v3 returns descriptions and comment bodies as ADF JSON trees.
``adf_to_text`` renders them for terminal display with a recursive tree
walker; unknown node types fall back to rendering their children so new
node kinds degrade gracefully. ``text_to_adf`` goes the other way for
plain-text input submitted to the API.

Reference: https://developer.atlassian.com/cloud/jira/platform/apis/document/structure/
"""

import logging
from typing import Any

logger = logging.getLogger("jcfa.jira.adf")

__all__ = ["adf_to_text", "extract_plain_text", "text_to_adf"]

_LIST_TYPES = ("bulletList", "orderedList")
_BULLET = "• "


def adf_to_text(adf_content: Any) -> str:
    """Convert Atlassian Document Format (ADF) JSON to plain text.

    Supported node types: doc, paragraph, heading, text, hardBreak, codeBlock,
    blockquote, bulletList, orderedList, listItem, rule, mediaSingle,
    mediaGroup, inlineCard, mention, emoji, table (tableRow, tableHeader,
    tableCell). Marks on text nodes are ignored. Any other node type renders
    its children.

    Never raises: missing or malformed attributes are omitted from output.

    Args:
        adf_content: ADF dict, an already-plain string, or None

    Returns:
        Plain text with trailing whitespace removed. Strings are returned
        unchanged; None and non-dict values give "".

    Example:
        >>> adf = {
        ...     "type": "doc",
        ...     "content": [
        ...         {"type": "paragraph", "content": [{"type": "text", "text": "Hello"}]}
        ...     ]
        ... }
        >>> adf_to_text(adf)
        'Hello'
    """
    if adf_content is None:
        return ""
    if isinstance(adf_content, str):
        return adf_content
    if not isinstance(adf_content, dict):
        return ""

    output: list[str] = []
    _walk_node(adf_content, output, depth=0)
    return "".join(output).rstrip()


def _attrs(node: dict[str, Any]) -> dict[str, Any]:
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, dict) else {}


def _attr_str(node: dict[str, Any], name: str) -> str:
    value = _attrs(node).get(name)
    return value if isinstance(value, str) else ""


def _children(node: dict[str, Any]) -> list[dict[str, Any]]:
    content = node.get("content")
    if not isinstance(content, list):
        return []
    # Guard against non-dict content items (malformed ADF)
    return [child for child in content if isinstance(child, dict)]


def _walk_children(node: dict[str, Any], output: list[str], depth: int) -> None:
    for child in _children(node):
        _walk_node(child, output, depth)


def _walk_node(node: dict[str, Any], output: list[str], depth: int = 0) -> None:
    """Recursively walk an ADF node and append rendered text to ``output``.

    Args:
        node: ADF node dict with type and optional content/attrs
        output: List of text fragments, joined by the caller
        depth: Current nesting depth for list indentation
    """
    node_type = node.get("type")

    if node_type == "text":
        text = node.get("text")
        if isinstance(text, str):
            output.append(text)
        return

    if node_type == "hardBreak":
        output.append("\n")
        return

    if node_type in ("doc", "listItem"):
        _walk_children(node, output, depth)
        return

    # Heading level is accepted but renders the same as a paragraph
    if node_type in ("paragraph", "heading"):
        _walk_children(node, output, depth)
        output.append("\n")
        return

    if node_type == "codeBlock":
        language = _attr_str(node, "language")
        if language:
            output.append(f"[{language}]\n")
        _walk_children(node, output, depth)
        output.append("\n")
        return

    if node_type == "blockquote":
        quote: list[str] = []
        _walk_children(node, quote, depth)
        for line in "".join(quote).rstrip("\n").split("\n"):
            output.append(f"> {line}\n")
        return

    if node_type in _LIST_TYPES:
        _walk_list(node, output, depth, ordered=node_type == "orderedList")
        return

    if node_type == "rule":
        output.append("---\n")
        return

    if node_type in ("mediaSingle", "mediaGroup"):
        _walk_media(node, output)
        return

    if node_type == "table":
        for row in _children(node):
            _walk_table_row(row, output)
        output.append("\n")
        return

    if node_type == "inlineCard":
        output.append(_attr_str(node, "url"))
        return

    if node_type == "mention":
        output.append(_attr_str(node, "text"))
        return

    if node_type == "emoji":
        output.append(_attr_str(node, "shortName"))
        return

    # Unknown node type: render children so content is not dropped
    logger.debug("adf_unknown_node_type", extra={"node_type": node_type})
    _walk_children(node, output, depth)


def _walk_list(node: dict[str, Any], output: list[str], depth: int, ordered: bool) -> None:
    indent = "  " * depth

    for index, item in enumerate(_children(node), start=1):
        marker = f"{index}. " if ordered else _BULLET
        output.append(indent + marker)

        item_text: list[str] = []
        for child in _children(item):
            if child.get("type") in _LIST_TYPES:
                # Flush text gathered so far before the nested list
                if item_text:
                    output.append("".join(item_text).rstrip("\n") + "\n")
                    item_text = []
                _walk_node(child, output, depth + 1)
            else:
                _walk_node(child, item_text, depth + 1)

        if item_text:
            text = "".join(item_text).rstrip("\n")
            # Continuation lines line up under the item text
            text = text.replace("\n", "\n" + indent + "  ")
            output.append(text + "\n")


def _walk_media(node: dict[str, Any], output: list[str]) -> None:
    emitted = False
    for child in _children(node):
        if child.get("type") != "media":
            continue
        emitted = True
        media_type = _attr_str(child, "type")
        if media_type == "file":
            alt = _attr_str(child, "alt")
            output.append(f"[File: {alt}]\n" if alt else "[File]\n")
        elif media_type == "external":
            url = _attr_str(child, "url")
            output.append(f"[Image: {url}]\n" if url else "[Image]\n")
        else:
            output.append("[Media]\n")

    if not emitted:
        output.append("[Media]\n")


def _walk_table_row(row: dict[str, Any], output: list[str]) -> None:
    cells: list[str] = []
    for cell in _children(row):
        cell_output: list[str] = []
        _walk_children(cell, cell_output, 0)
        cells.append("".join(cell_output).strip().replace("\n", " "))
    output.append("| " + " | ".join(cells) + " |\n")


def text_to_adf(text: str) -> dict[str, Any]:
    """Build an ADF document from plain text.

    Blank-line separated blocks become paragraphs and single newlines inside a
    block become hardBreak nodes. Empty text yields one empty paragraph, which
    Jira accepts for an empty description.
    """
    paragraphs: list[dict[str, Any]] = []
    normalized = (text or "").replace("\r\n", "\n")

    for block in normalized.split("\n\n"):
        block = block.strip("\n")
        if not block:
            continue
        content: list[dict[str, Any]] = []
        for i, line in enumerate(block.split("\n")):
            if i > 0:
                content.append({"type": "hardBreak"})
            if line:
                content.append({"type": "text", "text": line})
        paragraphs.append({"type": "paragraph", "content": content})

    if not paragraphs:
        paragraphs.append({"type": "paragraph", "content": []})

    return {"type": "doc", "version": 1, "content": paragraphs}


def extract_plain_text(adf_content: Any) -> str:
    """Extract text nodes only, for short previews (e.g., comment listings)."""
    if adf_content is None:
        return ""
    if isinstance(adf_content, str):
        return adf_content
    if not isinstance(adf_content, dict):
        return ""
    return "".join(_extract_text(child) for child in _children(adf_content)).strip()


def _extract_text(node: dict[str, Any]) -> str:
    parts: list[str] = []
    if node.get("type") == "text" and isinstance(node.get("text"), str):
        parts.append(node["text"])
    for child in _children(node):
        parts.append(_extract_text(child))
    if node.get("type") == "paragraph":
        parts.append("\n")
    return "".join(parts)
