"""Unit tests for prerender_proxy.injector."""

from __future__ import annotations

from prerender_proxy.injector import inject_scripts
from prerender_proxy.models.scripts import ScriptFragments

_DOC = "<html><head><title>T</title></head><body><div id=root></div></body></html>"

_HEAD_TAG = '<script src="https://analytics.example/a.js"></script>'
_BODY_TAG = "<script>window.ready = true</script>"


class TestInjectScripts:
    def test_inserts_before_closing_tags(self) -> None:
        fragments = ScriptFragments(head=(_HEAD_TAG,), body=(_BODY_TAG,))
        result = inject_scripts(_DOC, fragments)
        assert f"{_HEAD_TAG}\n</head>" in result
        assert f"{_BODY_TAG}\n</body>" in result
        # Original content is preserved once the fragments are removed
        assert result.replace(f"{_HEAD_TAG}\n", "").replace(f"{_BODY_TAG}\n", "") == _DOC

    def test_multiple_fragments_joined_in_order(self) -> None:
        fragments = ScriptFragments(head=("<script>1</script>", "<script>2</script>"))
        result = inject_scripts(_DOC, fragments)
        assert "<script>1</script>\n<script>2</script>\n</head>" in result

    def test_empty_fragments_are_noop(self) -> None:
        assert inject_scripts(_DOC, ScriptFragments()) == _DOC

    def test_empty_head_only_touches_body(self) -> None:
        result = inject_scripts(_DOC, ScriptFragments(body=(_BODY_TAG,)))
        assert "<title>T</title></head>" in result
        assert f"{_BODY_TAG}\n</body>" in result

    def test_missing_body_tag_leaves_document_unchanged(self) -> None:
        doc = "<html><head></head><body><p>unterminated"
        result = inject_scripts(doc, ScriptFragments(body=(_BODY_TAG,)))
        assert result == doc

    def test_missing_head_tag_still_injects_body(self) -> None:
        doc = "<html><body></body></html>"
        result = inject_scripts(doc, ScriptFragments(head=(_HEAD_TAG,), body=(_BODY_TAG,)))
        assert _HEAD_TAG not in result
        assert result == f"<html><body>{_BODY_TAG}\n</body></html>"

    def test_only_first_marker_is_used(self) -> None:
        doc = "<html><head></head><body></body><!-- </body> --></html>"
        result = inject_scripts(doc, ScriptFragments(body=(_BODY_TAG,)))
        assert result.count(_BODY_TAG) == 1
        assert result.index(_BODY_TAG) < result.index("<!--")
