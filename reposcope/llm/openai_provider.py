from typing import Optional

from openai import OpenAI

from reposcope.llm.base import LLMConfigError, LLMProvider


class OpenAIProvider(LLMProvider):
    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if not self.api_key:
            raise LLMConfigError("LLM_PROVIDER=openai but OPENAI_API_KEY is not set.")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def generate(
        self,
        system: str,
        user: str,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs = {}
        if max_tokens:
            kwargs["max_output_tokens"] = max_tokens
        if json_mode:
            kwargs["text"] = {"format": {"type": "json_object"}}
        resp = self.client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            **kwargs,
        )
        return resp.output_text
