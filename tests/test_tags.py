"""Tests for pagecache.tags -- conditional tag markers."""

from __future__ import annotations

from pagecache.tags import process_tags, render_tag


BODY = (
    b"<html>"
    b"<!--FPC:cart-->[cart]<!--/FPC:cart-->"
    b"<main>content</main>"
    b"<!--FPC:login-->[login\nbox]<!--/FPC:login-->"
    b"</html>"
)


class TestProcessTags:

    def test_active_tag_keeps_content(self) -> None:
        result = process_tags(BODY, ["cart"])
        assert b"[cart]" in result
        assert b"FPC:cart" not in result

    def test_inactive_tag_removes_block(self) -> None:
        result = process_tags(BODY, ["cart"])
        assert b"[login" not in result
        assert b"FPC:login" not in result

    def test_no_active_tags(self) -> None:
        assert process_tags(BODY, []) == b"<html><main>content</main></html>"

    def test_all_active(self) -> None:
        assert process_tags(BODY, ["cart", "login"]) == (
            b"<html>[cart]<main>content</main>[login\nbox]</html>"
        )

    def test_repeated_inactive_blocks_removed_individually(self) -> None:
        body = b"<!--FPC:a-->1<!--/FPC:a-->keep<!--FPC:a-->2<!--/FPC:a-->"
        assert process_tags(body, []) == b"keep"

    def test_no_markers_unchanged(self) -> None:
        assert process_tags(b"<p>plain</p>", ["x"]) == b"<p>plain</p>"

    def test_tag_name_with_regex_characters(self) -> None:
        body = b"<!--FPC:a.b-->x<!--/FPC:a.b-->"
        assert process_tags(body, ["a.b"]) == b"x"
        assert process_tags(body, []) == b""


class TestRenderTag:

    def test_wrap_for_cache_client(self) -> None:
        out = render_tag("cart", lambda: "[cart]", [], wrap=True)
        assert out == "<!--FPC:cart-->[cart]<!--/FPC:cart-->"

    def test_visible_tag_renders_content(self) -> None:
        assert render_tag("cart", lambda: "[cart]", ["cart"], wrap=False) == "[cart]"

    def test_hidden_tag_skips_content(self) -> None:
        called = []

        def content() -> str:
            called.append(True)
            return "[cart]"

        assert render_tag("cart", content, ["login"], wrap=False) == ""
        assert called == []

    def test_wrapped_output_resolved_by_process_tags(self) -> None:
        body = render_tag("cart", lambda: "[cart]", [], wrap=True).encode()
        assert process_tags(body, ["cart"]) == b"[cart]"
