from abc import ABC, abstractmethod
from typing import Optional


class LLMConfigError(RuntimeError):
    pass


class LLMProvider(ABC):
    model: str

    @abstractmethod
    def generate(
        self,
        system: str,
        user: str,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        raise NotImplementedError
