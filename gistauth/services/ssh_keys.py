"""Import of public SSH keys published by an identity provider."""

from __future__ import annotations

from typing import List, Optional

from ..core.config import Settings
from . import outbound
from .providers import Provider, url_join

GITHUB_URL = "https://github.com/"


def keys_url(provider: Provider, nickname: str, settings: Settings) -> Optional[str]:
    """URL of the ``<user>.keys`` listing, or None for providers without one."""

    if provider is Provider.GITHUB:
        return url_join(GITHUB_URL, f"{nickname}.keys")
    if provider is Provider.GITLAB:
        return url_join(settings.gitlab_url, f"{nickname}.keys")
    if provider is Provider.GITEA:
        return url_join(settings.gitea_url, f"{nickname}.keys")
    return None


def split_keys(body: str) -> List[str]:
    """One key per line; the empty string after a final newline is dropped."""

    keys = body.split("\n")
    if keys and not keys[-1]:
        keys.pop()
    return keys


def key_title(provider: Provider) -> str:
    return f"Added from {provider.value}"


async def fetch_public_keys(
    provider: Provider, nickname: str, settings: Settings
) -> List[str]:
    """Download the public keys of ``nickname``; raises ``httpx.HTTPError``."""

    url = keys_url(provider, nickname, settings)
    if url is None:
        return []

    async with outbound.async_client(settings) as client:
        response = await client.get(url)
        response.raise_for_status()
    return split_keys(response.text)


__all__ = ["fetch_public_keys", "key_title", "keys_url", "split_keys"]
