"""
Domain allow-list.

Registrations are only accepted from allowed organisations, identified by
the registrable domain of the submitted URL: the public suffix plus one
label. ``data.example.org`` and ``example.org`` share the registrable
domain ``example.org``; ``example.org.evil.com`` does not.

Hosts are normalized to lowercase IDNA form before the public suffix list
(the snapshot bundled with tldextract, no network access) is consulted.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import idna
import tldextract

from dataset_register.enums import DomainErrorCode
from dataset_register.stores import AllowedDomainStore

# Characters never valid in a host name (RFC 1035, RFC 5891)
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

_EXTRACT = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)


@dataclass
class DomainCheckResult:
    """Result of resolving a URL to its registrable domain."""

    valid: bool
    registrable_domain: Optional[str]
    error_code: Optional[DomainErrorCode] = None
    message: Optional[str] = None


def normalize_host(host: str) -> str:
    """
    Lowercase a host name and encode international labels with IDNA.

    Raises:
        idna.IDNAError: If IDNA encoding fails
    """
    host = host.strip().rstrip(".").lower()
    if any(ord(c) > 127 for c in host):
        host = idna.encode(host, uts46=True).decode("ascii")
    return host


def resolve_registrable_domain(url: str) -> DomainCheckResult:
    """Resolve the registrable domain of ``url``."""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        host = ""
    if not host:
        return DomainCheckResult(False, None, DomainErrorCode.EMPTY_HOST, f"No host in URL: {url!r}")

    try:
        ipaddress.ip_address(host.strip("[]"))
        return DomainCheckResult(False, None, DomainErrorCode.IP_ADDRESS, f"Host is an IP address: {host}")
    except ValueError:
        pass

    if FORBIDDEN_CHARS_PATTERN.search(host):
        return DomainCheckResult(
            False, None, DomainErrorCode.FORBIDDEN_CHARS, f"Host contains forbidden characters: {host!r}"
        )

    try:
        canonical = normalize_host(host)
    except idna.IDNAError as e:
        return DomainCheckResult(False, None, DomainErrorCode.IDNA_ERROR, f"IDNA encoding failed: {e}")

    if not canonical or any(not label for label in canonical.split(".")):
        return DomainCheckResult(
            False, None, DomainErrorCode.NO_REGISTRABLE_DOMAIN, f"Malformed host: {host!r}"
        )

    extracted = _EXTRACT(canonical)
    if not extracted.domain or not extracted.suffix:
        return DomainCheckResult(
            False,
            None,
            DomainErrorCode.NO_REGISTRABLE_DOMAIN,
            f"Host has no registrable domain: {canonical}",
        )

    return DomainCheckResult(True, f"{extracted.domain}.{extracted.suffix}")


def registrable_domain(url: str) -> Optional[str]:
    """The registrable domain of ``url``, or None if it has none."""
    return resolve_registrable_domain(url).registrable_domain


class DomainAllowList:
    """Checks submitted URLs against the allowed registrable domains."""

    def __init__(self, store: AllowedDomainStore) -> None:
        self._store = store

    async def check(self, url: str) -> DomainCheckResult:
        """Resolve the URL and report whether its registrable domain is allowed."""
        result = resolve_registrable_domain(url)
        if not result.valid:
            return result
        allowed = await self._store.contains(result.registrable_domain)
        if not allowed:
            return DomainCheckResult(
                False,
                result.registrable_domain,
                None,
                f"Domain {result.registrable_domain} is not on the allow-list",
            )
        return result

    async def is_allowed(self, url: str) -> bool:
        return (await self.check(url)).valid
