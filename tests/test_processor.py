"""Tests for ContentProcessor class."""

import pytest
from pathlib import Path
import tempfile
import shutil

import yaml
from markdown_it import MarkdownIt

from obsidian_parser.core.models import TocItem
from obsidian_parser.core.processor import ContentProcessor
from obsidian_parser.rendering.html import get_first_paragraph_text
from obsidian_parser.transforms.links import LinkResolver
from obsidian_parser.transforms.media import MediaResolver


class TestContentProcessor:
    """Tests for ContentProcessor class."""

    @pytest.fixture
    def temp_vault(self):
        temp_dir = tempfile.mkdtemp()
        vault_path = Path(temp_dir)

        (vault_path / "Test File.md").write_text("""---
public: true
tags:
  - markdown
  - yaml
  - html
date: 2024-01-15
---
# Hello

Links to [[other1]], [[other2]] and [[other3]].

## More

Closing text.
""")
        for name in ("other1", "other3"):
            (vault_path / f"{name}.md").write_text("---\npublic: true\n---\nPublic.\n")
        (vault_path / "other2.md").write_text("Private.\n")

        yield vault_path
        shutil.rmtree(temp_dir)

    @pytest.fixture
    def processor(self, temp_vault):
        allowed = [temp_vault / "Test File.md", temp_vault / "other1.md", temp_vault / "other3.md"]
        return ContentProcessor(link_resolver=LinkResolver(allowed, prefix="/content"))

    def test_public_links_become_anchors(self, processor, temp_vault):
        result = processor.process(temp_vault / "Test File.md", temp_vault)
        html = result.page.html

        assert '<a href="/content/other1">other1</a>' in html
        assert '<a href="/content/other3">other3</a>' in html
        assert "other2" in html
        assert '">other2</a>' not in html

    def test_missing_links_reported(self, processor, temp_vault):
        result = processor.process(temp_vault / "Test File.md", temp_vault)
        assert result.missing_links == ["other2"]
        assert result.missing_media == []

    def test_page_fields(self, processor, temp_vault):
        page = processor.process(temp_vault / "Test File.md", temp_vault).page

        assert page.file_name == "Test File"
        assert page.slug == "test-file"
        assert page.original_file_path == "Test File.md"
        assert page.frontmatter["public"] is True
        assert page.frontmatter["tags"] == ["markdown", "yaml", "html"]
        assert page.first_paragraph_text == "Links to other1, other2 and other3."

    def test_dates_are_json_safe(self, processor, temp_vault):
        page = processor.process(temp_vault / "Test File.md", temp_vault).page
        assert page.frontmatter["date"] == "2024-01-15"

    def test_toc(self, processor, temp_vault):
        page = processor.process(temp_vault / "Test File.md", temp_vault).page

        assert page.toc == [
            TocItem(title="Hello", depth=1, id="hello"),
            TocItem(title="More", depth=2, id="more"),
        ]

    def test_heading_links_to_itself(self, processor, temp_vault):
        html = processor.process(temp_vault / "Test File.md", temp_vault).page.html
        assert '<h1 id="hello"><a href="#hello">Hello</a></h1>' in html

    def test_plain_text(self, processor, temp_vault):
        plain = processor.process(temp_vault / "Test File.md", temp_vault).page.plain

        assert "Hello" in plain
        assert "Closing text." in plain
        assert "<" not in plain

    def test_relative_path_in_subdirectory(self, processor, temp_vault):
        (temp_vault / "notes").mkdir()
        note = temp_vault / "notes" / "Deep Note.md"
        note.write_text("Deep.\n")

        page = processor.process(note, temp_vault).page

        assert page.original_file_path == "notes/Deep Note.md"
        assert page.slug == "deep-note"

    def test_to_dict_keys(self, processor, temp_vault):
        data = processor.process(temp_vault / "Test File.md", temp_vault).page.to_dict()

        assert list(data) == [
            "fileName", "slug", "frontmatter", "firstParagraphText",
            "plain", "html", "toc", "originalFilePath",
        ]
        assert data["toc"][0] == {"title": "Hello", "depth": 1, "id": "hello"}

    def test_malformed_frontmatter_raises(self, processor, temp_vault):
        bad = temp_vault / "bad.md"
        bad.write_text("---\ntags: [unclosed\n---\nBody\n")

        with pytest.raises(yaml.YAMLError):
            processor.process(bad, temp_vault)

    def test_custom_markdown_builder(self, temp_vault):
        processor = ContentProcessor(
            link_resolver=LinkResolver([temp_vault / "other1.md"]),
            markdown_builder=lambda **kwargs: MarkdownIt("commonmark"),
        )
        html = processor.process(temp_vault / "Test File.md", temp_vault).page.html
        assert "[[other1]]" in html


class TestRendering:
    """Tests for markdown features in rendered output."""

    @pytest.fixture
    def processor(self):
        return ContentProcessor(link_resolver=LinkResolver([]))

    def test_core_rules_installed(self):
        processor = ContentProcessor(link_resolver=LinkResolver([]), path_map={"a.png": "/media/a.png"})
        rules = processor.md.core.ruler.get_all_rules()

        for name in ("obsidian_wikilinks", "obsidian_media", "image_sources", "heading_links"):
            assert name in rules
        assert rules.index("obsidian_wikilinks") < rules.index("heading_links")
        assert "obsidian_brackets" in processor.md.inline.ruler.get_all_rules()

    def test_empty_content(self, processor):
        rendered = processor.render("")
        assert rendered.html == ""

    def test_callout_with_title(self, processor):
        html = processor.render("> [!tip] Remember\n> Body text\n").html

        assert '<div class="callout callout-tip" data-callout="tip">' in html
        assert '<div class="callout-title">Remember</div>' in html
        assert '<div class="callout-content">' in html
        assert "Body text" in html
        assert "[!tip]" not in html
        assert "<blockquote>" not in html

    def test_callout_default_title(self, processor):
        html = processor.render("> [!NOTE]\n> Content\n").html

        assert 'data-callout="note"' in html
        assert '<div class="callout-title">Note</div>' in html

    def test_plain_blockquote_untouched(self, processor):
        html = processor.render("> Just a quote\n").html
        assert "<blockquote>" in html
        assert "callout" not in html

    def test_code_highlighting(self, processor):
        html = processor.render("```python\nprint('hi')\n```\n").html

        assert '<code class="language-python">' in html
        assert '<span class="nb">print</span>' in html

    def test_unknown_language_is_escaped(self, processor):
        html = processor.render("```nosuchlang\nx < y\n```\n").html
        assert "x &lt; y" in html

    def test_wikilinks_in_code_untouched(self, processor):
        html = processor.render("```\n[[other1]]\n```\n").html
        assert "[[other1]]" in html

    def test_external_links_nofollow(self, processor):
        html = processor.render("[site](https://example.com)").html
        assert '<a href="https://example.com" rel="nofollow">site</a>' in html

    def test_internal_links_followed(self, processor):
        html = processor.render("[page](/content/page)").html
        assert "nofollow" not in html

    def test_task_list(self, processor):
        html = processor.render("- [ ] todo\n- [x] done\n").html
        assert 'type="checkbox"' in html

    def test_inline_math(self, processor):
        html = processor.render("Area is $x^2$.").html
        assert 'class="math inline"' in html

    def test_footnote(self, processor):
        html = processor.render("Text[^1].\n\n[^1]: The note.\n").html
        assert "footnote" in html
        assert "The note." in html

    def test_table(self, processor):
        html = processor.render("| a | b |\n|---|---|\n| 1 | 2 |\n").html
        assert "<table>" in html

    def test_first_paragraph_skips_headings(self, processor):
        tokens = processor.render("# Title\n\nFirst `code` line\nsecond line\n\nLater.\n").tokens
        assert get_first_paragraph_text(tokens) == "First code line\nsecond line"

    def test_first_paragraph_missing(self, processor):
        assert get_first_paragraph_text(processor.render("# Only a heading\n").tokens) is None

    def test_media_embed_placeholder(self):
        processor = ContentProcessor(link_resolver=LinkResolver([]), media_resolver=MediaResolver())
        rendered = processor.render("![[missing.png]]")

        assert 'src="/placeholder/400/300"' in rendered.html
        assert rendered.env["missing_media"] == ["missing.png"]

    def test_asset_prefix_for_unmapped_images(self):
        processor = ContentProcessor(link_resolver=LinkResolver([]), asset_prefix="/assets")
        html = processor.render("![pic](pics/a.png)").html
        assert 'src="/assets/pics/a.png"' in html

    def test_path_map_for_standard_images(self):
        processor = ContentProcessor(
            link_resolver=LinkResolver([]),
            path_map={"pics/a.png": "/media/pics/a-md.jpeg"},
            asset_prefix="/assets",
        )
        html = processor.render("![pic](pics/a.png)").html
        assert 'src="/media/pics/a-md.jpeg"' in html
