from pathlib import Path

from signoff.generative.exceptions import RescueError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt_template(path: Path | None = None) -> str:
    """Load the rescue prompt template (defaults to the bundled one).

    Raises:
        RescueError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "identifier_rescue_prompt.txt"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RescueError(f"Failed to load prompt template: {exc}") from exc


def load_json_schema(path: Path | None = None) -> str:
    """Load the response JSON schema (defaults to the bundled one).

    Raises:
        RescueError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "identifier_rescue_schema.json"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RescueError(f"Failed to load JSON schema: {exc}") from exc
