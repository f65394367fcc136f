"""Tests for the single-file editor session."""

import asyncio

import pytest

from notestore.editor import EditorSession, FileDraftStore, MemoryDraftStore


@pytest.fixture
def drafts():
    return MemoryDraftStore()


@pytest.fixture
def editor(mirror, gateway, reconciler, drafts):
    return EditorSession(mirror, gateway, reconciler, drafts)


class TestOpen:
    @pytest.mark.asyncio
    async def test_nothing_selected(self, editor):
        assert (await editor.open()).is_invalid
        assert editor.path is None

    @pytest.mark.asyncio
    async def test_existing_file(self, editor, mirror, gateway, seed):
        seed({"notes/a.md": b"# Notes\n"})
        mirror.select("notes/a.md")
        outcome = await editor.open()
        assert outcome.value == "# Notes\n"
        assert editor.content == "# Notes\n"
        assert mirror.selection.revision == await gateway.latest_revision("notes/a.md")

    @pytest.mark.asyncio
    async def test_created_file_is_not_read(self, editor, mutator, mirror, gateway, drafts):
        await mutator.create_file("notes", "todo.md")
        outcome = await editor.open()
        assert outcome.value == ""
        assert gateway.count("read") == 0
        assert await drafts.get("notes/todo.md") == ""

    @pytest.mark.asyncio
    async def test_missing_file(self, editor, mirror):
        mirror.select("gone.md")
        outcome = await editor.open()
        assert outcome.is_failure
        assert outcome.reason == "File not found on GitHub: gone.md"
        assert editor.content is None

    @pytest.mark.asyncio
    async def test_selection_changed_while_loading(self, editor, mirror, gateway, seed, wait_for_call):
        seed({"a.md": b"a", "b.md": b"b"})
        mirror.select("a.md")
        gate = gateway.hold("read", "a.md")
        pending = asyncio.create_task(editor.open())
        await wait_for_call(gateway, "read", "a.md")
        mirror.select("b.md")
        gate.set()

        outcome = await pending
        assert outcome.is_invalid
        assert editor.content is None
        assert mirror.selection.revision is None


class TestSave:
    @pytest.mark.asyncio
    async def test_edit_then_save(self, editor, mirror, gateway, seed):
        seed({"a.md": b"v1"})
        mirror.select("a.md")
        await editor.open()
        await editor.edit("v2")

        outcome = await editor.save("Edit a.md")
        assert outcome.ok
        assert (await gateway.read_blob("a.md")).data == b"v2"
        assert mirror.selection.revision == outcome.value

    @pytest.mark.asyncio
    async def test_new_file_first_save(self, editor, mutator, mirror, gateway):
        await mutator.create_file("", "todo.md")
        await editor.open()
        await editor.edit("- [ ] write tests\n")
        assert (await editor.save("Write todo")).ok
        assert not mirror.selection.is_new
        assert (await gateway.read_blob("todo.md")).text == "- [ ] write tests\n"

    @pytest.mark.asyncio
    async def test_external_change_conflicts(self, editor, mirror, gateway, drafts, seed):
        seed({"a.md": b"v1"})
        mirror.select("a.md")
        await editor.open()
        loaded = mirror.selection.revision
        await gateway.write_blob("a.md", "remote", "Remote edit", precondition=loaded)

        assert (await editor.check_external_change()).value is True
        assert mirror.selection.external_change

        await editor.edit("local")
        outcome = await editor.save("Edit")
        assert outcome.is_conflict
        assert editor.content == "local"
        assert await drafts.get("a.md") == "local"
        assert (await gateway.read_blob("a.md")).data == b"remote"

        await editor.reload()
        assert not mirror.selection.external_change
        assert editor.content == "remote"

    @pytest.mark.asyncio
    async def test_no_external_change(self, editor, mirror, seed):
        seed({"a.md": b"v1"})
        mirror.select("a.md")
        await editor.open()
        assert (await editor.check_external_change()).value is False

    @pytest.mark.asyncio
    async def test_missing_draft(self, editor, mirror):
        mirror.select("a.md", revision="abc")
        outcome = await editor.save("Edit")
        assert outcome.is_failure
        assert outcome.reason == "Could not retrieve content from local storage for saving."


class TestFileDraftStore:
    @pytest.mark.asyncio
    async def test_roundtrip(self, tmp_path):
        store = FileDraftStore(tmp_path / "drafts")
        assert await store.get("notes/a.md") is None
        await store.set("notes/a.md", "draft")
        assert await store.get("notes/a.md") == "draft"
        assert [p.name for p in (tmp_path / "drafts").iterdir()] == ["notes%2Fa.md"]
