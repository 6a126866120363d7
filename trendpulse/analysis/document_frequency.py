"""Document-frequency index over a bounded document window."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class DocumentFrequencyIndex:
    """Token -> number of documents containing it at least once.

    Attributes:
        counts: Read-only document frequency per token
        total_docs: Window size, floored at 1 so ratios never divide by zero
    """

    counts: Mapping[str, int] = field(default_factory=dict)
    total_docs: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))
        object.__setattr__(self, "total_docs", max(1, int(self.total_docs)))

    @classmethod
    def build(cls, token_sequences: Iterable[Iterable[str]]) -> "DocumentFrequencyIndex":
        """Count document frequency across a window.

        Each document's tokens are de-duplicated before counting, so a token
        repeated inside one document contributes once.

        Args:
            token_sequences: One token sequence per document in the window

        Returns:
            The index; an empty window yields no counts and ``total_docs == 1``

        Examples:
            >>> index = DocumentFrequencyIndex.build([["model", "model"], ["model", "launch"]])
            >>> index.df("model"), index.df("launch"), index.total_docs
            (2, 1, 2)
        """
        counts: dict[str, int] = {}
        documents = 0
        for tokens in token_sequences:
            documents += 1
            for token in dict.fromkeys(tokens):
                counts[token] = counts.get(token, 0) + 1
        return cls(counts=counts, total_docs=documents)

    def df(self, token: str) -> int:
        return self.counts.get(token, 0)

    def ratio(self, token: str) -> float:
        """Fraction of the window's documents that contain ``token``."""
        return self.df(token) / self.total_docs

    def __len__(self) -> int:
        return len(self.counts)

    def __contains__(self, token: object) -> bool:
        return token in self.counts
