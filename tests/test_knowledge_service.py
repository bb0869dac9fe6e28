"""Tests for KnowledgeService."""

from vault_agent.services.knowledge_service import CONTEXT_PREAMBLE, KnowledgeService


class TestKnowledgeService:
    def test_build_context_renders_sections(self, vault):
        (vault / "Notes").mkdir()
        (vault / "Notes" / "recipes.md").write_text("Pancakes need milk.")
        service = KnowledgeService(vault)

        context = service.build_context(["Notes/recipes.md"])

        assert context.startswith(CONTEXT_PREAMBLE)
        assert (
            "--- Reference: Notes/recipes.md ---\nPancakes need milk.\n--- End: Notes/recipes.md ---"
            in context
        )

    def test_missing_files_skipped(self, vault):
        (vault / "a.md").write_text("A")
        service = KnowledgeService(vault)

        context = service.build_context(["missing.md", "a.md"])

        assert "missing.md" not in context
        assert "--- Reference: a.md ---" in context

    def test_empty_input(self, vault):
        service = KnowledgeService(vault)

        assert service.build_context([]) == ""
        assert service.build_context(["missing.md"]) == ""

    def test_unsafe_paths_never_read(self, tmp_path, vault):
        (tmp_path / "secret.md").write_text("secret")
        service = KnowledgeService(vault)

        assert service.build_context(["../secret.md"]) == ""

    def test_filter_existing_paths(self, vault):
        (vault / "a.md").write_text("A")
        (vault / "folder").mkdir()
        service = KnowledgeService(vault)

        assert service.filter_existing_paths(["a.md", "b.md", "folder"]) == ["a.md"]
