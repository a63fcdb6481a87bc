"""Tests for VaultDiscovery class."""

import pytest
from pathlib import Path
import tempfile
import shutil

from obsidian_parser.core.discovery import VaultDiscovery, iter_markdown_files
from obsidian_parser.core.models import DiscoveryError


class TestVaultDiscovery:
    """Tests for VaultDiscovery class."""

    @pytest.fixture
    def temp_vault(self):
        """Create a temporary vault with test notes."""
        temp_dir = tempfile.mkdtemp()
        vault_path = Path(temp_dir)

        # Public note with tags
        note1 = vault_path / "note1.md"
        note1.write_text("""---
title: Test Note One
public: true
tags:
  - evergreen
  - domain/cs
---

# Test Note One

This is test content.
""")

        # Public note with excluded tag
        note2 = vault_path / "note2.md"
        note2.write_text("""---
title: Draft Note
public: true
tags:
  - draft
  - domain/math
---

# Draft content
""")

        # Note without frontmatter is private
        note3 = vault_path / "note3.md"
        note3.write_text("""# No Frontmatter

Just plain content.
""")

        # Public note with string tag
        note4 = vault_path / "note4.md"
        note4.write_text("""---
title: Single Tag Note
public: true
tags: evergreen
---

Content here.
""")

        # Explicitly private note
        note5 = vault_path / "note5.md"
        note5.write_text("""---
title: Private Note
public: false
---

Secret.
""")

        yield vault_path

        # Cleanup
        shutil.rmtree(temp_dir)

    def test_discover_all_finds_public_notes(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        notes = discovery.discover_all()
        # note3 has no frontmatter and note5 is public: false
        assert [n.path.name for n in notes] == ["note1.md", "note2.md", "note4.md"]

    def test_public_must_be_boolean_true(self, temp_vault):
        (temp_vault / "note6.md").write_text("""---
public: "yes"
---
Content.
""")
        discovery = VaultDiscovery(temp_vault)
        names = {n.path.name for n in discovery.discover_all()}
        assert "note6.md" not in names

    def test_discover_with_required_tags(self, temp_vault):
        discovery = VaultDiscovery(temp_vault, required_tags=["evergreen"])
        notes = discovery.discover_all()
        assert len(notes) == 2
        titles = {n.title for n in notes}
        assert "Test Note One" in titles
        assert "Single Tag Note" in titles

    def test_discover_with_excluded_tags(self, temp_vault):
        discovery = VaultDiscovery(temp_vault, excluded_tags=["draft"])
        notes = discovery.discover_all()
        assert len(notes) == 2
        titles = {n.title for n in notes}
        assert "Draft Note" not in titles

    def test_discover_with_both_filters(self, temp_vault):
        discovery = VaultDiscovery(
            temp_vault,
            required_tags=["evergreen"],
            excluded_tags=["draft"]
        )
        notes = discovery.discover_all()
        assert len(notes) == 2

    def test_build_allow_set_holds_absolute_paths(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        allowed = discovery.build_allow_set()

        assert allowed == {
            (temp_vault / "note1.md").resolve(),
            (temp_vault / "note2.md").resolve(),
            (temp_vault / "note4.md").resolve(),
        }

    def test_build_allow_set_is_rebuilt_from_disk(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        first = discovery.build_allow_set()

        (temp_vault / "note5.md").write_text("---\npublic: true\n---\nNow public.\n")
        second = discovery.build_allow_set()

        assert (temp_vault / "note5.md").resolve() not in first
        assert (temp_vault / "note5.md").resolve() in second

    def test_is_publishable_with_required_tags(self, temp_vault):
        discovery = VaultDiscovery(temp_vault, required_tags=["evergreen"])
        note = discovery.read_note(temp_vault / "note1.md")
        is_pub, reason = discovery.is_publishable(note)
        assert is_pub is True
        assert reason == "OK"

    def test_is_publishable_missing_required_tags(self, temp_vault):
        discovery = VaultDiscovery(temp_vault, required_tags=["evergreen"])
        note = discovery.read_note(temp_vault / "note2.md")
        is_pub, reason = discovery.is_publishable(note)
        assert is_pub is False
        assert "Missing required tags" in reason

    def test_is_publishable_has_excluded_tags(self, temp_vault):
        discovery = VaultDiscovery(temp_vault, excluded_tags=["draft"])
        note = discovery.read_note(temp_vault / "note2.md")
        is_pub, reason = discovery.is_publishable(note)
        assert is_pub is False
        assert "excluded tags" in reason

    def test_is_publishable_private_note(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        note = discovery.read_note(temp_vault / "note5.md")
        is_pub, reason = discovery.is_publishable(note)
        assert is_pub is False
        assert reason == "Not marked public"

    def test_note_metadata_has_correct_fields(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        note = discovery.read_note(temp_vault / "note1.md")

        assert note.title == "Test Note One"
        assert note.slug == "note1"
        assert note.is_public is True
        assert "evergreen" in note.tags
        assert "domain/cs" in note.tags
        # Content is accessed via lazy loading
        assert "# Test Note One" in note.context.read_raw()

    def test_note_without_frontmatter(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        note = discovery.read_note(temp_vault / "note3.md")

        assert note is not None
        assert note.title == "note3"  # Falls back to filename
        assert note.tags == []
        assert note.is_public is False
        assert "# No Frontmatter" in note.context.read_raw()

    def test_subdirectories_are_scanned(self, temp_vault):
        subdir = temp_vault / "posts"
        subdir.mkdir()
        (subdir / "post1.md").write_text("""---
title: Post One
public: true
---

Post content.
""")

        discovery = VaultDiscovery(temp_vault)
        titles = {n.title for n in discovery.discover_all()}

        assert "Post One" in titles

    def test_hidden_directories_are_skipped(self, temp_vault):
        hidden = temp_vault / ".obsidian"
        hidden.mkdir()
        (hidden / "workspace.md").write_text("---\npublic: true\n---\n")

        discovery = VaultDiscovery(temp_vault)
        names = {n.path.name for n in discovery.discover_all()}

        assert "workspace.md" not in names

    def test_missing_vault_raises(self, temp_vault):
        discovery = VaultDiscovery(temp_vault / "nonexistent")
        with pytest.raises(FileNotFoundError):
            discovery.discover_all()

    def test_string_tag_format(self, temp_vault):
        discovery = VaultDiscovery(temp_vault)
        note = discovery.read_note(temp_vault / "note4.md")

        assert note is not None
        assert "evergreen" in note.tags


class TestIterMarkdownFiles:
    """Tests for the vault walk."""

    def test_walk_is_sorted_and_recursive(self, tmp_path):
        (tmp_path / "b.md").write_text("b")
        (tmp_path / "a.md").write_text("a")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.md").write_text("c")
        (tmp_path / "image.png").write_bytes(b"")

        files = [p.relative_to(tmp_path).as_posix() for p in iter_markdown_files(tmp_path)]

        assert files == ["a.md", "b.md", "sub/c.md"]

    def test_walk_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            list(iter_markdown_files(tmp_path / "missing"))


class TestFrontmatterParsing:
    """Tests for frontmatter parsing edge cases."""

    @pytest.fixture
    def temp_vault(self):
        temp_dir = tempfile.mkdtemp()
        yield Path(temp_dir)
        shutil.rmtree(temp_dir)

    def test_malformed_yaml(self, temp_vault):
        note = temp_vault / "bad.md"
        note.write_text("""---
title: Bad YAML
tags: [unclosed bracket
---

Content.
""")

        discovery = VaultDiscovery(temp_vault)
        result = discovery.read_note(temp_vault / "bad.md")

        assert result is None
        assert len(discovery.errors) == 1
        assert discovery.errors[0].path == note

    def test_frontmatter_without_closing(self, temp_vault):
        note = temp_vault / "unclosed.md"
        note.write_text("""---
title: Unclosed
public: true

Content without closing frontmatter.
""")

        discovery = VaultDiscovery(temp_vault)
        result = discovery.read_note(temp_vault / "unclosed.md")
        # No closing delimiter means no frontmatter at all
        assert result is not None
        assert result.is_public is False


class TestErrorHandling:
    """Tests for error handling and collection."""

    @pytest.fixture
    def temp_vault(self):
        temp_dir = tempfile.mkdtemp()
        yield Path(temp_dir)
        shutil.rmtree(temp_dir)

    def test_errors_collected_during_discover_all(self, temp_vault):
        (temp_vault / "good.md").write_text("""---
title: Good Note
public: true
---
Content.
""")
        (temp_vault / "bad.md").write_text("""---
title: Bad YAML
tags: [unclosed
---
Content.
""")

        discovery = VaultDiscovery(temp_vault)
        notes = discovery.discover_all()

        assert len(notes) == 1
        assert notes[0].title == "Good Note"
        assert len(discovery.errors) == 1
        assert discovery.errors[0].path.name == "bad.md"

    def test_fail_fast_raises_on_first_error(self, temp_vault):
        (temp_vault / "bad.md").write_text("""---
tags: [unclosed
---
""")

        discovery = VaultDiscovery(temp_vault, fail_fast=True)

        with pytest.raises(DiscoveryError) as exc_info:
            discovery.discover_all()
        assert exc_info.value.path.name == "bad.md"

    def test_multiple_errors_collected(self, temp_vault):
        (temp_vault / "bad1.md").write_text("""---
tags: [unclosed
---
""")
        (temp_vault / "bad2.md").write_text("""---
title: Also Bad
invalid yaml: [
---
""")
        (temp_vault / "good.md").write_text("""---
title: Good
public: true
---
Content.
""")

        discovery = VaultDiscovery(temp_vault)
        notes = discovery.discover_all()

        assert len(notes) == 1
        assert len(discovery.errors) == 2
