from typing import Any

import httpx
import openai

from signoff.generative.client_base import BaseRescueClient
from signoff.generative.exceptions import RescueError, RescueNetworkError


class OpenAIClientAdapter(BaseRescueClient):
    """Rescue client for OpenAI and OpenAI-compatible chat completion endpoints.

    Retries are disabled: the orchestrator makes one attempt per document and
    falls through to termination on failure.
    """

    provider_name = "openai"
    SCHEMA_NAME = "identifier_rescue"

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
        )

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=temperature,
                response_format=self._response_format(json_schema),
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except (openai.APITimeoutError, httpx.TimeoutException) as exc:
            raise RescueNetworkError(
                f"AI provider timed out after {self._timeout_seconds}s"
            ) from exc
        except (openai.APIConnectionError, httpx.ConnectError) as exc:
            raise RescueNetworkError(f"AI provider network error: {exc}") from exc
        except openai.APIStatusError as exc:
            raise RescueNetworkError(f"AI provider returned {exc.status_code}") from exc
        except openai.APIError as exc:
            raise RescueNetworkError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise RescueError("AI returned no choices")
        message = response.choices[0].message
        if getattr(message, "refusal", None):
            raise RescueError(f"AI refused the request: {message.refusal}")
        if message.content is None:
            raise RescueError("AI returned empty response")
        return message.content

    def _response_format(self, json_schema: dict[str, object]) -> Any:
        return {
            "type": "json_schema",
            "json_schema": {"name": self.SCHEMA_NAME, "strict": True, "schema": json_schema},
        }
