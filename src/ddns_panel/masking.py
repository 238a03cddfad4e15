"""
Masking of provider credentials shown to the web form.

The form never receives a real provider ID or secret. It receives a
placeholder that keeps a short prefix and stars out the rest; when the same
placeholder comes back in a save request the stored value is kept.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from ddns_panel.models import DomainConfigDTO

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Final

    from ddns_panel.models import DomainConfig


ID_VISIBLE_CHARS: Final[int] = 2
SECRET_VISIBLE_CHARS: Final[int] = 5
MASK_CHAR: Final[str] = "*"


def mask_value(value: str, visible: int) -> str:
    """
    Mask a credential, keeping at most ``visible`` leading characters.

    Values not longer than ``visible`` are starred out entirely so that a
    short secret is never displayed in full.

    Parameters
    ----------
    value : str
        The real value.
    visible : int
        Number of leading characters to keep.

    Returns
    -------
    str
        The placeholder, of the same length as ``value``.
    """
    if len(value) <= visible:
        return MASK_CHAR * len(value)
    return value[:visible] + MASK_CHAR * (len(value) - visible)


def mask_id_secret(domain: DomainConfig) -> tuple[str, str]:
    """
    Compute the masked ID and masked secret of a domain entry.

    Returns
    -------
    tuple[str, str]
        ``(masked_id, masked_secret)``.
    """
    return (
        mask_value(domain.dns.id, ID_VISIBLE_CHARS),
        mask_value(domain.dns.secret, SECRET_VISIBLE_CHARS),
    )


def to_client_dto(domain: DomainConfig) -> DomainConfigDTO:
    """
    Convert a stored domain entry to its masked client form.

    Parameters
    ----------
    domain : DomainConfig
        Stored entry.

    Returns
    -------
    DomainConfigDTO
        Entry with masked credentials and newline-joined domain lists.
    """
    masked_id, masked_secret = mask_id_secret(domain)
    return DomainConfigDTO(
        dns_name=domain.dns.name,
        dns_id=masked_id,
        dns_secret=masked_secret,
        ttl=domain.ttl,
        ipv4_enable=domain.ipv4.enable,
        ipv4_get_type=domain.ipv4.get_type,
        ipv4_url=domain.ipv4.url,
        ipv4_net_interface=domain.ipv4.net_interface,
        ipv4_cmd=domain.ipv4.cmd,
        ipv4_domains="\n".join(domain.ipv4.domains),
        ipv6_enable=domain.ipv6.enable,
        ipv6_get_type=domain.ipv6.get_type,
        ipv6_url=domain.ipv6.url,
        ipv6_net_interface=domain.ipv6.net_interface,
        ipv6_cmd=domain.ipv6.cmd,
        ipv6_reg=domain.ipv6.ipv6_reg,
        ipv6_domains="\n".join(domain.ipv6.domains),
    )


def dns_conf_json(domains: Sequence[DomainConfig]) -> str:
    """
    Encode a domain list in its masked client form as a JSON string.

    Parameters
    ----------
    domains : Sequence[DomainConfig]
        Stored entries.

    Returns
    -------
    str
        JSON array of masked DTOs, keyed by the form's field names.
    """
    return json.dumps(
        [to_client_dto(d).model_dump(by_alias=True) for d in domains],
        ensure_ascii=False,
    )
