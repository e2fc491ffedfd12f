# resize_proxy/core/host_allowlist.py
"""
Allow-list of source hosts the proxy may fetch from.

Built once at startup from ``URL_WHITELIST`` and handed to the pipeline.
Instances are immutable, so all concurrent requests share one without
locking.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from resize_proxy.core.domain import host_of
from resize_proxy.core.errors import ConfigurationError


@dataclass(frozen=True)
class HostAllowlist:
    hosts: frozenset[str]

    @classmethod
    def of(cls, hosts: Iterable[str]) -> "HostAllowlist":
        return cls(hosts=frozenset(hosts))

    @classmethod
    def from_settings(cls, settings) -> "HostAllowlist":
        """
        Build the allow-list from application settings.

        Raises:
            ConfigurationError: if no hosts are configured.
        """
        hosts = settings.allowed_hosts
        if not hosts:
            raise ConfigurationError(
                "URL_WHITELIST is empty: at least one source host must be allowed"
            )
        return cls.of(hosts)

    def is_allowed(self, url: str) -> bool:
        """True iff the URL has a host and that host is exactly listed."""
        host = host_of(url)
        if host is None:
            return False
        return host in self.hosts

    def __len__(self) -> int:
        return len(self.hosts)
