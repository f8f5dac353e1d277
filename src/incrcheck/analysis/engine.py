"""Read-only view of the dependency-graph engine's fingerprint store."""

from __future__ import annotations

from typing import Mapping, Protocol

from incrcheck.analysis.model import ArtifactIdentity

Fingerprint = str


class UnknownArtifactError(LookupError):
    def __init__(self, artifact: ArtifactIdentity) -> None:
        super().__init__(f"{artifact.label}({artifact.identity})")
        self.artifact = artifact


class DepGraph(Protocol):
    def fingerprint_of(self, artifact: ArtifactIdentity) -> Fingerprint: ...

    def prev_fingerprint_of(self, artifact: ArtifactIdentity) -> Fingerprint | None: ...


class SnapshotDepGraph:
    """Fingerprints captured from two runs of the engine."""

    def __init__(
        self,
        current: Mapping[ArtifactIdentity, Fingerprint],
        previous: Mapping[ArtifactIdentity, Fingerprint],
    ) -> None:
        self._current = dict(current)
        self._previous = dict(previous)

    def fingerprint_of(self, artifact: ArtifactIdentity) -> Fingerprint:
        try:
            return self._current[artifact]
        except KeyError:
            raise UnknownArtifactError(artifact) from None

    def prev_fingerprint_of(self, artifact: ArtifactIdentity) -> Fingerprint | None:
        return self._previous.get(artifact)

    def __len__(self) -> int:
        return len(self._current)
