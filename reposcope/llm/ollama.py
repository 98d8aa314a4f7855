from typing import Optional

import requests

from reposcope.llm.base import LLMProvider


class OllamaProvider(LLMProvider):
    def __init__(self, host: str, model: str):
        self.host = host.rstrip("/")
        self.model = model

    def generate(
        self,
        system: str,
        user: str,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        url = f"{self.host}/api/chat"
        options = {"temperature": 0.2}
        if max_tokens:
            options["num_predict"] = max_tokens
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "stream": False,
            "options": options,
        }
        if json_mode:
            payload["format"] = "json"
        r = requests.post(url, json=payload, timeout=300)
        r.raise_for_status()
        data = r.json()
        return data["message"]["content"]
