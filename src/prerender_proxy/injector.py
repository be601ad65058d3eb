"""Textual script injection into HTML documents.

Deliberately not an HTML parser: a single insertion before the first closing
``</head>`` and ``</body>`` marker. A document carrying a literal ``</head>`` or
``</body>`` inside an inline script or string would receive the fragments at
that position instead. Cached pages are produced by our own population job,
so the marker is trusted to be the real closing tag.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from prerender_proxy.models.scripts import ScriptFragments

HEAD_CLOSE = "</head>"
BODY_CLOSE = "</body>"


def _insert_before(html: str, marker: str, fragments: Sequence[str]) -> str:
    if not fragments:
        return html
    index = html.find(marker)
    if index == -1:
        return html
    return html[:index] + "\n".join(fragments) + "\n" + html[index:]


def inject_scripts(html: str, fragments: ScriptFragments) -> str:
    """Insert head and body fragments before their closing tags (first occurrence)."""
    html = _insert_before(html, HEAD_CLOSE, fragments.head)
    return _insert_before(html, BODY_CLOSE, fragments.body)
