from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from lingo.app.translation.providers.base import ProviderError


def versioned_endpoint(base_url: str, resource: str, provider_name: str) -> str:
    parts = urlsplit(base_url.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ProviderError.transport(
            f"Invalid base URL '{base_url}' for {provider_name} provider."
        )

    base_path = parts.path.strip("/")
    if base_path.endswith("v1"):
        path = f"/{base_path}/{resource}"
    elif not base_path:
        path = f"/v1/{resource}"
    else:
        path = f"/{base_path}/v1/{resource}"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def joined_endpoint(base_url: str, resource: str, provider_name: str) -> str:
    parts = urlsplit(base_url.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ProviderError.transport(
            f"Invalid base URL '{base_url}' for {provider_name} provider."
        )
    base_path = parts.path.strip("/")
    path = f"/{base_path}/{resource}" if base_path else f"/{resource}"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))
