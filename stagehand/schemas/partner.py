"""
Partner schema - a dependency edge from one actor to another source.

Partners are only used while computing the dependency closure of a
Playbook; they are never persisted on their own.
"""

from dataclasses import dataclass
from typing import Any, Optional


def source_url(
    repository: str,
    revision: Optional[str] = None,
    path: Optional[str] = None,
) -> str:
    """
    Normalize a (repository, revision, path) triple into a single identity.

    Format: ``<repository>[#<revision>][:<path>]`` where the repository has
    no trailing slash or ``.git`` suffix and the path has no surrounding
    slashes. Actors and partners use the same normalization, so an actor
    and a partner naming the same source compare equal.
    """
    repo = (repository or "").strip().rstrip("/")
    if repo.endswith(".git"):
        repo = repo[:-4]

    url = repo
    if revision:
        url = f"{url}#{revision.strip()}"

    subpath = (path or "").strip().strip("/")
    if subpath and subpath != ".":
        url = f"{url}:{subpath}"
    return url


@dataclass(frozen=True, eq=False)
class Partner:
    """
    A declared dependency on another actor's source.

    Two partners are equal iff their normalized url() is equal; the
    logical name does not take part in identity.

    Attributes:
        name: Logical name of the partner actor
        repository: Source repository URL
        reference: Branch or tag (optional)
        path: Sub-path inside the repository (optional)
        commit: Pinned commit (optional)
    """
    name: str
    repository: str
    reference: Optional[str] = None
    path: Optional[str] = None
    commit: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Partner name is required")
        if not self.repository:
            raise ValueError(f"Partner {self.name}: repository is required")

    @property
    def revision(self) -> Optional[str]:
        """The revision used for identity: reference first, then commit."""
        return self.reference or self.commit

    def url(self) -> str:
        return source_url(self.repository, self.revision, self.path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Partner):
            return NotImplemented
        return self.url() == other.url()

    def __hash__(self) -> int:
        return hash(self.url())

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "repository": self.repository}
        if self.reference is not None:
            result["reference"] = self.reference
        if self.path is not None:
            result["path"] = self.path
        if self.commit is not None:
            result["commit"] = self.commit
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Partner":
        return cls(
            name=data["name"],
            repository=data["repository"],
            reference=data.get("reference"),
            path=data.get("path"),
            commit=data.get("commit"),
        )
