from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class TextGenerationBackend(ABC):
    name: str

    @abstractmethod
    def stream_text(self, messages: list[dict]) -> AsyncIterator[str]:
        """Return an async iterator of text fragments in emission order."""
