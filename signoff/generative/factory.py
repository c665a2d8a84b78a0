from typing import ClassVar

from signoff.config.settings import Settings
from signoff.generative.example_client_adapter import ExampleClientAdapter
from signoff.generative.openai_client_adapter import OpenAIClientAdapter
from signoff.generative.rescuer import IdentifierRescuer


class RescuerFactory:
    """Creates the configured identifier rescuer, or None when disabled."""

    PROVIDERS: ClassVar[tuple[str, ...]] = ("openai", "openai_compatible", "example", "none")

    @classmethod
    def create(cls, settings: Settings) -> IdentifierRescuer | None:
        provider = settings.generative_provider.lower()
        if provider == "none":
            return None
        if provider == "example":
            return IdentifierRescuer(client=ExampleClientAdapter(), model="example")
        if provider not in cls.PROVIDERS:
            raise ValueError(
                f"Unknown generative provider '{provider}'. Choose from: {list(cls.PROVIDERS)}"
            )
        client = OpenAIClientAdapter(
            api_key=settings.generative_api_key,
            timeout_seconds=settings.generative_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
        )
        return IdentifierRescuer(
            client=client,
            model=settings.generative_model_name,
            temperature=settings.generative_temperature,
        )

    @staticmethod
    def _resolve_base_url(provider: str, settings: Settings) -> str | None:
        url = (settings.generative_base_url or "").strip()
        if provider == "openai_compatible" and not url:
            raise ValueError(
                "generative_base_url is required for generative_provider=openai_compatible"
            )
        return url or None
