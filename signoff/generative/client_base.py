from abc import ABC, abstractmethod


class BaseRescueClient(ABC):
    """A chat model endpoint that answers with JSON matching a given schema."""

    provider_name: str = "unknown"

    @abstractmethod
    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        """Send one system + user exchange and return the raw reply text.

        Raises:
            RescueNetworkError: transport, timeout or provider status failures.
            RescueError: the provider answered but with nothing usable.
        """
