from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional


class LLM(ABC):
    name: str

    @abstractmethod
    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """Return the full completion text."""
        ...

    @abstractmethod
    def generate_stream(self, prompt: str, system: Optional[str] = None) -> Iterator[str]:
        """Yield completion text pieces as the server produces them."""
        ...


def chat_messages(prompt: str, system: Optional[str] = None) -> List[Dict[str, str]]:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages
