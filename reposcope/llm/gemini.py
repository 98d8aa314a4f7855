from typing import Optional

from google import genai
from google.genai import types

from reposcope.llm.base import LLMConfigError, LLMProvider


class GeminiProvider(LLMProvider):
    def __init__(self, api_key: str, model: str, temperature: float = 0.2):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if not self.api_key:
            raise LLMConfigError(
                "Gemini API key is not configured. Please set the GEMINI_API_KEY environment variable."
            )
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate(
        self,
        system: str,
        user: str,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=self.temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )
        resp = self.client.models.generate_content(
            model=self.model,
            contents=user,
            config=config,
        )
        return resp.text or ""
