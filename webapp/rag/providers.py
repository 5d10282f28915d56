"""Provider alias resolution and search filters."""

from typing import Optional

# User-facing name -> provider tag stored in the index
PROVIDER_ALIASES: dict[str, str] = {
    "claude": "anthropic",
    "anthropic": "anthropic",
    "gemini": "google",
    "google": "google",
    "openai": "openai",
}

CANONICAL_PROVIDERS = ["openai", "anthropic", "google"]


class ProviderResolver:
    """Maps aliases to canonical provider tags.

    Unknown names pass through unchanged, so a newly indexed provider is
    searchable without a code change.
    """

    def __init__(self, aliases: Optional[dict[str, str]] = None):
        self.aliases = {k.lower(): v for k, v in (aliases or PROVIDER_ALIASES).items()}

    def resolve(self, provider: Optional[str]) -> Optional[str]:
        if provider is None or not provider.strip():
            return None
        return self.aliases.get(provider.strip().lower(), provider)

    def build_filter(self, provider: Optional[str]) -> Optional[dict]:
        """Metadata filter restricting a search to one provider, or None for all."""
        canonical = self.resolve(provider)
        if canonical is None:
            return None
        return {"provider": {"$eq": canonical}}
