"""
Data models for DDNS Panel.

This module defines the persisted configuration (``Configuration`` and its
per-domain ``DomainConfig`` entries) and the wire models exchanged with the
web form, whose field names follow the form's own naming.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _drop_nulls(data: Any) -> Any:
    """Drop null members so they fall back to the field defaults."""
    if isinstance(data, dict):
        return {key: value for key, value in data.items() if value is not None}
    return data


class DnsProviderConfig(BaseModel):
    """
    DNS provider identity and credentials for one domain entry.

    Attributes
    ----------
    name : str
        Provider identifier (e.g. "alidns", "cloudflare").
    id : str
        Provider access key ID (empty for token-only providers).
    secret : str
        Provider access key secret or API token.
    """

    name: str = ""
    id: str = ""
    secret: str = ""


class Ipv4Config(BaseModel):
    """
    IPv4 update settings of a domain entry.

    Attributes
    ----------
    enable : bool
        Whether A records are updated.
    get_type : str
        IP detection method ("url", "netInterface" or "cmd").
    url : str
        Source URL(s) used by the "url" method.
    net_interface : str
        Interface name used by the "netInterface" method.
    cmd : str
        Shell command used by the "cmd" method.
    domains : list[str]
        Domain names to update, in order.
    """

    enable: bool = False
    get_type: str = ""
    url: str = ""
    net_interface: str = ""
    cmd: str = ""
    domains: list[str] = Field(default_factory=list)


class Ipv6Config(Ipv4Config):
    """
    IPv6 update settings of a domain entry.

    Attributes
    ----------
    ipv6_reg : str
        Regular expression selecting one address when an interface has
        several.
    """

    ipv6_reg: str = ""


class DomainConfig(BaseModel):
    """
    One domain-update rule.

    Attributes
    ----------
    ttl : str
        Record TTL as entered by the user (empty means provider default).
    dns : DnsProviderConfig
        Provider identity and credentials.
    ipv4 : Ipv4Config
        IPv4 settings.
    ipv6 : Ipv6Config
        IPv6 settings.
    """

    ttl: str = ""
    dns: DnsProviderConfig = Field(default_factory=DnsProviderConfig)
    ipv4: Ipv4Config = Field(default_factory=Ipv4Config)
    ipv6: Ipv6Config = Field(default_factory=Ipv6Config)


class Configuration(BaseModel):
    """
    Persisted panel configuration.

    Attributes
    ----------
    username : str
        Login username.
    password : str
        bcrypt hash of the login password (never the raw password).
    not_allow_wan_access : bool
        Whether the panel rejects clients outside private networks.
    webhook_url : str
        Webhook called after DNS updates.
    webhook_request_body : str
        Webhook request body template (GET is used when empty).
    webhook_headers : str
        Extra webhook headers, one ``Name: value`` per line.
    dns_conf : list[DomainConfig]
        Domain-update rules, in order.
    """

    username: str = ""
    password: str = ""
    not_allow_wan_access: bool = True
    webhook_url: str = ""
    webhook_request_body: str = ""
    webhook_headers: str = ""
    dns_conf: list[DomainConfig] = Field(default_factory=list)

    @property
    def has_credentials(self) -> bool:
        """Whether both username and password hash are set."""
        return bool(self.username and self.password)


class DomainConfigDTO(BaseModel):
    """
    Client-side representation of a ``DomainConfig``.

    Domains are newline-delimited text and ``DnsID`` / ``DnsSecret`` may hold
    masked placeholders. An instance equal to ``DomainConfigDTO()`` is a
    sentinel meaning "no entry here".
    """

    model_config = ConfigDict(populate_by_name=True)

    dns_name: str = Field(default="", alias="DnsName")
    dns_id: str = Field(default="", alias="DnsID")
    dns_secret: str = Field(default="", alias="DnsSecret")
    ttl: str = Field(default="", alias="TTL")
    ipv4_enable: bool = Field(default=False, alias="Ipv4Enable")
    ipv4_get_type: str = Field(default="", alias="Ipv4GetType")
    ipv4_url: str = Field(default="", alias="Ipv4Url")
    ipv4_net_interface: str = Field(default="", alias="Ipv4NetInterface")
    ipv4_cmd: str = Field(default="", alias="Ipv4Cmd")
    ipv4_domains: str = Field(default="", alias="Ipv4Domains")
    ipv6_enable: bool = Field(default=False, alias="Ipv6Enable")
    ipv6_get_type: str = Field(default="", alias="Ipv6GetType")
    ipv6_url: str = Field(default="", alias="Ipv6Url")
    ipv6_net_interface: str = Field(default="", alias="Ipv6NetInterface")
    ipv6_cmd: str = Field(default="", alias="Ipv6Cmd")
    ipv6_reg: str = Field(default="", alias="Ipv6Reg")
    ipv6_domains: str = Field(default="", alias="Ipv6Domains")

    @model_validator(mode="before")
    @classmethod
    def nulls_as_defaults(cls, data: Any) -> Any:
        # A null entry is the "no entry here" sentinel
        if data is None:
            return {}
        return _drop_nulls(data)

    def is_empty(self) -> bool:
        """Whether every field still holds its default value."""
        return self == DomainConfigDTO()


class SaveRequest(BaseModel):
    """Body of a ``POST /save`` request."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(default="", alias="Username")
    password: str = Field(default="", alias="Password")
    not_allow_wan_access: bool = Field(default=False, alias="NotAllowWanAccess")
    webhook_url: str = Field(default="", alias="WebhookURL")
    webhook_request_body: str = Field(default="", alias="WebhookRequestBody")
    webhook_headers: str = Field(default="", alias="WebhookHeaders")
    dns_conf: list[DomainConfigDTO] = Field(default_factory=list, alias="DnsConf")

    @model_validator(mode="before")
    @classmethod
    def nulls_as_defaults(cls, data: Any) -> Any:
        return _drop_nulls(data)


class SaveResponse(BaseModel):
    """
    Body of a ``POST /save`` response.

    Attributes
    ----------
    result : str
        ``"ok"`` or a localized error message.
    dns_conf : str
        JSON-encoded masked domain list (``"[]"`` unless ``result`` is ok).
    """

    model_config = ConfigDict(populate_by_name=True)

    result: str
    dns_conf: str = Field(default="[]", alias="dnsConf")


class ConfigView(BaseModel):
    """Configuration as shown to the web form (secrets masked, no password)."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(alias="Username")
    not_allow_wan_access: bool = Field(alias="NotAllowWanAccess")
    webhook_url: str = Field(alias="WebhookURL")
    webhook_request_body: str = Field(alias="WebhookRequestBody")
    webhook_headers: str = Field(alias="WebhookHeaders")
    dns_conf: list[DomainConfigDTO] = Field(alias="DnsConf")
