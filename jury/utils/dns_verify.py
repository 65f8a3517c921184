"""
Custom domain ownership checks via DNS TXT records.

The owner publishes ``<DOMAIN_VERIFY_PREFIX>.<domain>  TXT  <token>``; we
resolve it and compare against the token we issued.
"""

import logging
from dataclasses import dataclass
from typing import List

import dns.exception
import dns.resolver

from jury import config

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    verified: bool
    message: str


class DnsLookupError(Exception):
    """TXT lookup failed for any resolver reason."""


def verification_host(domain: str) -> str:
    return f"{config.DOMAIN_VERIFY_PREFIX}.{domain}"


def lookup_txt_records(host: str) -> List[str]:
    """
    Resolve TXT records for ``host``.

    Each record contributes its joined value and, for multi-string records,
    every chunk on its own, so a token published either way matches.

    Raises:
        DnsLookupError: If the name cannot be resolved
    """
    try:
        answers = dns.resolver.resolve(host, "TXT")
    except dns.exception.DNSException as e:
        # Includes NameTooLong for over-long hosts and resolver config errors
        raise DnsLookupError(str(e)) from e

    records = []
    for record in answers:
        chunks = [s.decode() if isinstance(s, bytes) else s for s in record.strings]
        records.append("".join(chunks))
        if len(chunks) > 1:
            records.extend(chunks)
    return records


def check_domain_verification(domain: str, token: str) -> VerificationResult:
    """Compare the published TXT values for ``domain`` against ``token``."""
    host = verification_host(domain)

    try:
        records = lookup_txt_records(host)
    except DnsLookupError as e:
        logger.info(f"DNS lookup failed for {host}: {e}")
        return VerificationResult(
            verified=False,
            message=f"Could not resolve DNS for {host}. Please add the TXT record and try again.",
        )

    if any(record.strip() == token for record in records):
        return VerificationResult(verified=True, message="Domain verified successfully")

    return VerificationResult(
        verified=False,
        message=f"TXT record not found. Add a TXT record for {host} with value: {token}",
    )
