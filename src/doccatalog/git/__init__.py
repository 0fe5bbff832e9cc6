from .cache import RepositoryResolver, ResolvedSource
from .credentials import CREDENTIAL_STORES, CredentialStore, GitCredentialStore
from .globs import resolve_path_globs
from .refs import Ref, enumerate_refs
from .repository import GitRepository
from .tree import FsTree, GitTree

__all__ = [
    "CREDENTIAL_STORES",
    "CredentialStore",
    "FsTree",
    "GitCredentialStore",
    "GitRepository",
    "GitTree",
    "Ref",
    "RepositoryResolver",
    "ResolvedSource",
    "enumerate_refs",
    "resolve_path_globs",
]
