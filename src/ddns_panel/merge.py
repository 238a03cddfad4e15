"""
Merge of submitted domain entries into the stored domain list.

Submitted entries are aligned with stored ones by position. A submitted ID
or secret equal to the masked form of the stored value at the same position
means "unchanged" and resolves to the stored value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ddns_panel.i18n import ordinal, translate
from ddns_panel.masking import mask_id_secret
from ddns_panel.models import DnsProviderConfig, DomainConfig, Ipv4Config, Ipv6Config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ddns_panel.i18n import Language
    from ddns_panel.models import DomainConfigDTO


@dataclass
class MergeResult:
    """
    Outcome of a merge.

    Attributes
    ----------
    domains : list[DomainConfig]
        Merged entries, in submission order.
    warnings : list[str]
        Localized non-fatal warnings.
    """

    domains: list[DomainConfig] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def split_lines(text: str) -> list[str]:
    """
    Split newline-delimited text into trimmed, non-blank lines.

    Parameters
    ----------
    text : str
        Text as entered in a textarea (``\\n`` or ``\\r\\n`` line endings).

    Returns
    -------
    list[str]
        Lines in order, blank ones dropped.
    """
    return [line.strip() for line in text.splitlines() if line.strip()]


def build_domain_config(dto: DomainConfigDTO) -> DomainConfig:
    """
    Build a stored entry from a submitted one, without secret resolution.

    Parameters
    ----------
    dto : DomainConfigDTO
        Submitted entry.

    Returns
    -------
    DomainConfig
        New entry with trimmed text fields and split domain lists.
    """
    return DomainConfig(
        ttl=dto.ttl,
        dns=DnsProviderConfig(
            name=dto.dns_name,
            id=dto.dns_id.strip(),
            secret=dto.dns_secret.strip(),
        ),
        ipv4=Ipv4Config(
            enable=dto.ipv4_enable,
            get_type=dto.ipv4_get_type,
            url=dto.ipv4_url.strip(),
            net_interface=dto.ipv4_net_interface,
            cmd=dto.ipv4_cmd.strip(),
            domains=split_lines(dto.ipv4_domains),
        ),
        ipv6=Ipv6Config(
            enable=dto.ipv6_enable,
            get_type=dto.ipv6_get_type,
            url=dto.ipv6_url.strip(),
            net_interface=dto.ipv6_net_interface,
            cmd=dto.ipv6_cmd.strip(),
            ipv6_reg=dto.ipv6_reg.strip(),
            domains=split_lines(dto.ipv6_domains),
        ),
    )


def merge_domain_configs(
    submitted: Sequence[DomainConfigDTO],
    previous: Sequence[DomainConfig],
    lang: Language,
) -> MergeResult:
    """
    Reconcile submitted domain entries with the stored ones.

    Parameters
    ----------
    submitted : Sequence[DomainConfigDTO]
        Entries from the save request, in order.
    previous : Sequence[DomainConfig]
        Currently stored entries, in order (may be empty).
    lang : Language
        Language of the warnings.

    Returns
    -------
    MergeResult
        The new domain list and any warnings.
    """
    result = MergeResult()

    for k, dto in enumerate(submitted):
        if dto.is_empty():
            continue

        domain = build_domain_config(dto)

        if k < len(previous):
            old = previous[k]
            masked_id, masked_secret = mask_id_secret(old)
            if domain.dns.id == masked_id:
                domain.dns.id = old.dns.id
            if domain.dns.secret == masked_secret:
                domain.dns.secret = old.dns.secret

        if not domain.ipv4.domains and not domain.ipv6.domains:
            warning = translate(lang, "no_domains", ordinal=ordinal(k + 1, lang))
            result.warnings.append(warning)

        result.domains.append(domain)

    return result
