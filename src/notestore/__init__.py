from .entries import (
    BlobContent, CommitRef, ContentKind, EntryType, RevisionInfo, Selection,
    StagedContent, StagedFile, TreeEntry, sort_entries,
)
from .outcome import Outcome, OutcomeKind
from .exceptions import GatewayError, NotConnectedError, NotFoundError, ConflictError
from .gateway import GitHubGateway, LocalGateway, RemoteGateway, CommitStep, open_gateway
from .mirror import TreeMirror, MirrorTransaction
from .mutations import OptimisticMutator
from .staging import StagingBuffer, DropResult, LocalFile, MemoryFile
from .reconciler import CommitReconciler
from .diffing import (
    CommitProposal, HttpMessageSuggester, build_diff, prepare_commit, suggest_commit_message,
)
from .editor import EditorSession, FileDraftStore, MemoryDraftStore
from .config import Settings

__all__ = [
    "BlobContent", "CommitRef", "ContentKind", "EntryType", "RevisionInfo", "Selection",
    "StagedContent", "StagedFile", "TreeEntry", "sort_entries",
    "Outcome", "OutcomeKind",
    "GatewayError", "NotConnectedError", "NotFoundError", "ConflictError",
    "GitHubGateway", "LocalGateway", "RemoteGateway", "CommitStep", "open_gateway",
    "TreeMirror", "MirrorTransaction", "OptimisticMutator",
    "StagingBuffer", "DropResult", "LocalFile", "MemoryFile",
    "CommitReconciler",
    "CommitProposal", "HttpMessageSuggester", "build_diff", "prepare_commit",
    "suggest_commit_message",
    "EditorSession", "FileDraftStore", "MemoryDraftStore",
    "Settings",
]
