"""Offline rescue client.

Returns a canned answer without any network call. Handy for local runs and as
the starting point for a new provider adapter: implement BaseRescueClient and
register the provider in RescuerFactory.
"""

import json
import re

from signoff.generative.client_base import BaseRescueClient

_DIGITS = re.compile(r"\d{3,}")


class ExampleClientAdapter(BaseRescueClient):
    """Echoes the longest digit run found in the prompt's cropped text block."""

    provider_name = "example"

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        _ = model, temperature, system_prompt, json_schema
        cropped = user_prompt.split("<cropped_text>", 1)[-1].split("</cropped_text>", 1)[0]
        runs = sorted(_DIGITS.findall(cropped), key=len, reverse=True)
        if not runs:
            return json.dumps(
                {"identifier": None, "confidence": 0.0, "rationale": "no digit run in cropped text"}
            )
        return json.dumps(
            {"identifier": runs[0], "confidence": 0.5, "rationale": "longest digit run in cropped text"}
        )
