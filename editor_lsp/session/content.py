"""Hover and documentation content helpers."""

import re
from typing import Any, Optional

from markdown_it import MarkdownIt

from editor_lsp.lsp.types import is_markup_content

_markdown = MarkdownIt("commonmark")

# whitespace and backticks only, e.g. an empty ``` fence
_EMPTY_ISH = re.compile(r"^[\s`]*$")


def format_contents(contents: Any, allow_html: bool = False) -> str:
    """Flatten MarkupContent / MarkedString / MarkedString[] to display text.

    Markdown is rendered to HTML only when ``allow_html`` is set; otherwise
    the raw markdown source is returned for the editor to show as text.
    """
    if not contents:
        return ""
    if is_markup_content(contents):
        value = contents.get("value", "")
        if contents["kind"] == "markdown" and allow_html:
            value = _markdown.render(value)
        return value
    if isinstance(contents, list):
        return "".join(f"{format_contents(c, allow_html)}\n\n" for c in contents)
    if isinstance(contents, str):
        return contents
    if isinstance(contents, dict) and "value" in contents:
        # MarkedString {language, value}
        if allow_html:
            return _markdown.render(f"```{contents.get('language', '')}\n{contents['value']}\n```")
        return contents["value"]
    return ""


def _is_empty_ish(value: Optional[Any]) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return _EMPTY_ISH.match(value) is not None
    return False


def is_empty_documentation(documentation: Any) -> bool:
    """True when documentation has nothing worth showing.

    None, empty lists, and strings or markup values made only of whitespace
    and backticks all count as empty.
    """
    if documentation is None:
        return True
    if isinstance(documentation, list):
        return all(is_empty_documentation(d) for d in documentation)
    if isinstance(documentation, str):
        return _is_empty_ish(documentation)
    if isinstance(documentation, dict):
        value = documentation.get("value")
        if isinstance(value, str):
            return _is_empty_ish(value)
    return False
