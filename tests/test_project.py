# ABOUTME: Tests for the project state store
# ABOUTME: Missing state means "not initialized"; malformed state is an error, never a reset
import json

import pytest

from mcpp.models import ProjectDescriptor
from mcpp.project import ProjectNotInitializedError, ProjectStateError, ProjectStateStore


@pytest.fixture
def store(tmp_path):
    return ProjectStateStore(tmp_path)


def _write_state(store, text):
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(text)


class TestLoad:
    """Tests for load() and require()."""

    def test_missing_returns_none(self, store):
        assert store.exists() is False
        assert store.load() is None

    def test_require_missing_raises(self, store):
        with pytest.raises(ProjectNotInitializedError, match="mcpp init"):
            store.require()

    def test_invalid_json(self, store):
        _write_state(store, "{not json")
        with pytest.raises(ProjectStateError, match="Invalid JSON"):
            store.load()

    def test_not_an_object(self, store):
        _write_state(store, "[]")
        with pytest.raises(ProjectStateError, match="JSON object"):
            store.load()

    def test_missing_fields(self, store):
        _write_state(store, json.dumps({"name": "demo"}))
        with pytest.raises(ProjectStateError, match="Invalid project state"):
            store.require()

    def test_malformed_file_left_untouched(self, store):
        _write_state(store, "{not json")
        with pytest.raises(ProjectStateError):
            store.load()
        assert store.path.read_text() == "{not json"


class TestSave:
    """Tests for save() and render()."""

    def test_save_and_load(self, store):
        descriptor = ProjectDescriptor("demo", ["filesystem"], ["cursor"], "c", "c")

        store.save(descriptor)

        assert store.path == store.project_dir / ".mcp" / "config.json"
        assert store.load() == descriptor

    def test_saved_content_matches_render(self, store):
        descriptor = ProjectDescriptor("demo", ["github"], ["warp"], "c", "u")
        store.save(descriptor)
        assert store.path.read_text() == store.render(descriptor)
        assert store.path.read_text().endswith("}\n")

    def test_save_replaces_whole_file(self, store):
        store.save(ProjectDescriptor("demo", ["github", "filesystem"], ["cursor"], "c", "c"))
        store.save(ProjectDescriptor("demo", ["filesystem"], ["cursor"], "c", "u"))
        assert json.loads(store.path.read_text())["servers"] == ["filesystem"]
