"""Generative identifier rescue over cropped-region text."""

import json
from pathlib import Path

from signoff.extraction.candidates import digits_only
from signoff.generative.client_base import BaseRescueClient
from signoff.generative.exceptions import RescueError
from signoff.generative.models import RescueResult
from signoff.generative.prompt_loader import load_json_schema, load_prompt_template
from signoff.logging.logger import Log

MAX_CROPPED_CHARS = 2000

SYSTEM_PROMPT = (
    "You extract work order numbers from cropped document regions. "
    "Always respond with valid JSON only."
)


class IdentifierRescuer:
    """Asks a chat model for the identifier inside a capture zone's text.

    Only ever sees the cropped text handed to rescue(); callers are
    responsible for never passing whole-document text.
    """

    def __init__(
        self,
        *,
        client: BaseRescueClient,
        model: str,
        temperature: float = 0.0,
        prompt_template_path: Path | None = None,
        json_schema_path: Path | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(0.2, temperature))
        self._system_prompt = system_prompt
        self._prompt_template = load_prompt_template(prompt_template_path)
        schema_str = load_json_schema(json_schema_path)
        self._json_schema = schema_str
        self._json_schema_dict = json.loads(schema_str)

    def rescue(self, cropped_text: str, *, expected_digits: int) -> RescueResult:
        """Return the model's reading of cropped_text.

        Raises:
            RescueError: on provider failure or an unusable response.
        """
        if not cropped_text.strip():
            raise RescueError("Cropped text is empty")
        prompt = self.build_prompt(cropped_text, expected_digits)
        Log.debug(
            "Rescue prompt built",
            provider=self._client.provider_name,
            model=self._model,
            chars=len(prompt),
        )

        raw_response = self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            user_prompt=prompt,
            json_schema=self._json_schema_dict,
        )
        Log.debug("Rescue raw response", response=raw_response[:200])
        return self._to_result(self._parse_json(raw_response))

    def build_prompt(self, cropped_text: str, expected_digits: int) -> str:
        return self._prompt_template.format(
            cropped_text=cropped_text[:MAX_CROPPED_CHARS],
            expected_digits=expected_digits,
            min_digits=max(1, expected_digits - 1),
            max_digits=expected_digits + 1,
            json_schema=self._json_schema,
        )

    @staticmethod
    def _to_result(parsed: dict[str, object]) -> RescueResult:
        raw_identifier = parsed.get("identifier")
        identifier = None
        if isinstance(raw_identifier, (str, int)) and not isinstance(raw_identifier, bool):
            identifier = digits_only(str(raw_identifier)) or None

        raw_confidence = parsed.get("confidence", 0.0)
        try:
            confidence = float(raw_confidence)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            confidence = 0.0
        confidence = max(0.0, min(1.0, confidence))

        rationale = parsed.get("rationale")
        return RescueResult(
            identifier=identifier,
            confidence=confidence,
            rationale=str(rationale) if rationale else "Identifier rescued from cropped region",
        )

    @staticmethod
    def _parse_json(raw: str) -> dict[str, object]:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            lines = cleaned.splitlines()
            if lines and lines[0].startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            cleaned = "\n".join(lines)

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise RescueError(f"Invalid JSON response: {exc}") from exc

        if not isinstance(parsed, dict):
            raise RescueError("JSON response must be an object")
        return parsed
