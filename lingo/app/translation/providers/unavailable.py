from __future__ import annotations

from lingo.app.translation.providers.base import ProviderError, TranslationProvider
from lingo.app.translation.types import ProviderRequest, ProviderResult


class OnDeviceProvider(TranslationProvider):
    """Placeholder for system-provided backends that this build cannot reach."""

    def __init__(self, provider_name: str) -> None:
        self._provider_name = provider_name

    @property
    def name(self) -> str:
        return self._provider_name

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        raise ProviderError.unsupported(
            f"Error: Provider '{self._provider_name}' is not available on this platform."
        )
