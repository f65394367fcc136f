"""Shared fixtures for notestore tests."""

import asyncio
import logging

import pytest
import structlog
from click.testing import CliRunner

from notestore.gateway import LocalGateway
from notestore.mirror import TreeMirror
from notestore.mutations import OptimisticMutator
from notestore.reconciler import CommitReconciler
from notestore.staging import StagingBuffer
from notestore.tree import create_blob


class RecordingGateway(LocalGateway):
    """LocalGateway that records primitive calls.

    ``hold(op)`` returns an event the primitive waits on before running;
    ``fail(op, exc)`` makes the primitive raise *exc*.  Ops are named after
    the primitives without the leading underscore.
    """

    def __init__(self, path, **kwargs):
        super().__init__(path, **kwargs)
        self.calls = []
        self.gates = {}
        self.failures = {}

    def hold(self, op, arg=None):
        event = asyncio.Event()
        self.gates[(op, arg)] = event
        return event

    def fail(self, op, exc):
        self.failures[op] = exc

    def count(self, op, arg=None):
        return sum(1 for o, a in self.calls if o == op and (arg is None or a == arg))

    async def _enter(self, op, arg):
        self.calls.append((op, arg))
        gate = self.gates.get((op, arg)) or self.gates.get((op, None))
        if gate is not None:
            await gate.wait()
        if op in self.failures:
            raise self.failures[op]

    async def _list(self, path):
        await self._enter("list", path)
        return await super()._list(path)

    async def _read(self, path, revision):
        await self._enter("read", path)
        return await super()._read(path, revision)

    async def _put(self, path, data, message, precondition):
        await self._enter("put", path)
        return await super()._put(path, data, message, precondition)

    async def _delete(self, path, revision, message):
        await self._enter("delete", path)
        return await super()._delete(path, revision, message)

    async def _history(self, path):
        await self._enter("history", path)
        return await super()._history(path)

    async def _resolve_head(self):
        await self._enter("resolve_head", None)
        return await super()._resolve_head()

    async def _commit_tree(self, commit_sha):
        await self._enter("commit_tree", commit_sha)
        return await super()._commit_tree(commit_sha)

    async def _create_blob(self, content, encoding):
        await self._enter("create_blob", encoding)
        return await super()._create_blob(content, encoding)

    async def _create_tree(self, base_tree, items):
        await self._enter("create_tree", base_tree)
        return await super()._create_tree(base_tree, items)

    async def _create_commit(self, message, tree, parents):
        await self._enter("create_commit", message)
        return await super()._create_commit(message, tree, parents)

    async def _update_ref(self, commit_sha, expected_head):
        await self._enter("update_ref", commit_sha)
        return await super()._update_ref(commit_sha, expected_head)


def _seed(gateway, files, message="seed"):
    """Commit *files* (path → bytes) to the gateway's branch in one commit."""
    writes = {path: create_blob(gateway._store, data) for path, data in files.items()}
    gateway._commit_change(gateway._head(), writes, set(), message)


async def _wait_for_call(gateway, op, arg=None):
    """Yield to the loop until *op* has been entered."""
    for _ in range(1000):
        if gateway.count(op, arg):
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{op} was never called")


@pytest.fixture(autouse=True)
def reset_logging():
    handlers = list(logging.root.handlers)
    level = logging.root.level
    yield
    logging.root.handlers = handlers
    logging.root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def gateway(tmp_path):
    return RecordingGateway(tmp_path / "notes.git")


@pytest.fixture
def seed(gateway):
    """Commit files (path → bytes) to the test repository."""
    return lambda files, message="seed": _seed(gateway, files, message)


@pytest.fixture
def wait_for_call():
    return _wait_for_call


@pytest.fixture
def mirror(gateway):
    return TreeMirror(gateway)


@pytest.fixture
def mutator(mirror, gateway):
    return OptimisticMutator(mirror, gateway)


@pytest.fixture
def staging():
    return StagingBuffer()


@pytest.fixture
def reconciler(gateway, staging, mirror):
    return CommitReconciler(gateway, staging, mirror)


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def repo_path(tmp_path):
    """Return a path to a not-yet-created repo."""
    return str(tmp_path / "cli.git")
