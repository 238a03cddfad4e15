"""
Message catalogs for DDNS Panel.

Every user-facing string produced by the save pipeline is looked up here
by key, in the language selected from the request's ``Accept-Language``
header.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Final


class Language(StrEnum):
    """
    Supported message languages.

    Attributes
    ----------
    ZH : str
        Simplified Chinese.
    EN : str
        English.
    """

    ZH = "zh"
    EN = "en"


DEFAULT_LANGUAGE: Final[Language] = Language.EN


MESSAGES: Final[dict[Language, dict[str, str]]] = {
    Language.ZH: {
        "parse_failed": "数据解析失败, 请刷新页面重试",
        "bootstrap_first_time": "请在ddns-panel启动后 {minutes} 分钟内完成初始化配置",
        "bootstrap_credentials": (
            "之前未设置帐号密码, 仅允许在ddns-panel启动后 {minutes} 分钟内设置, "
            "请重启ddns-panel"
        ),
        "weak_password": "密码不安全！尝试使用更复杂的密码",
        "missing_credentials": "必须输入登录用户名/密码",
        "save_failed": "保存配置文件失败: {reason}",
        "concurrent_update": "配置正在被其他请求修改, 请稍后重试",
        "no_domains": "第 {ordinal} 个配置未填写域名",
        "webhook_not_configured": "未配置 Webhook URL",
        "webhook_result": "Webhook 调用完成, 状态码: {status_code}",
        "webhook_failed": "Webhook 调用失败: {reason}",
    },
    Language.EN: {
        "parse_failed": "Failed to parse data, please refresh the page and try again",
        "bootstrap_first_time": (
            "Initial configuration must be completed within {minutes} minutes "
            "after ddns-panel starts"
        ),
        "bootstrap_credentials": (
            "No username/password was set before; they can only be set within "
            "{minutes} minutes after ddns-panel starts, please restart ddns-panel"
        ),
        "weak_password": "The password is not secure! Try a more complex password",
        "missing_credentials": "Username and password are required",
        "save_failed": "Failed to save the configuration file: {reason}",
        "concurrent_update": (
            "The configuration is being changed by another request, "
            "please try again later"
        ),
        "no_domains": "The {ordinal} configuration has no domains",
        "webhook_not_configured": "Webhook URL is not configured",
        "webhook_result": "Webhook called, status code: {status_code}",
        "webhook_failed": "Webhook call failed: {reason}",
    },
}


def select_language(accept_language: str | None) -> Language:
    """
    Pick the message language from an ``Accept-Language`` header value.

    Parameters
    ----------
    accept_language : str | None
        Raw header value (e.g. ``"zh-CN,zh;q=0.9,en;q=0.8"``).

    Returns
    -------
    Language
        ``Language.ZH`` if the preferred language is Chinese,
        ``Language.EN`` otherwise.
    """
    if not accept_language:
        return DEFAULT_LANGUAGE
    preferred = accept_language.split(",", 1)[0].strip().lower()
    if preferred.startswith("zh"):
        return Language.ZH
    return DEFAULT_LANGUAGE


def translate(lang: Language, key: str, **params: Any) -> str:
    """
    Look up and format a catalog message.

    Parameters
    ----------
    lang : Language
        Target language.
    key : str
        Catalog key.
    **params : Any
        Values substituted into the message template.

    Returns
    -------
    str
        The formatted message. Unknown keys fall back to the English
        catalog, then to the key itself.
    """
    template = MESSAGES[lang].get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key, key)
    return template.format(**params)


def ordinal(n: int, lang: Language) -> str:
    """
    Format a 1-based position as an ordinal word for the given language.

    Examples: ``1`` -> ``"1st"`` (en), ``"1"`` (zh, the catalog supplies
    the surrounding characters).
    """
    if lang == Language.ZH:
        return str(n)
    if 10 <= n % 100 <= 20:  # noqa: PLR2004
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"
