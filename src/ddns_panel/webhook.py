"""
Webhook notifications.

The webhook URL and request body may contain ``#{name}`` placeholders that
are replaced with the outcome of a synchronization pass. An empty body
sends a GET request; otherwise the body is POSTed.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from typing import Final


# HTTP timeout in seconds
HTTP_TIMEOUT: Final[float] = 30.0

_PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"#\{(\w+)\}")

# Values used by the "test webhook" action
SAMPLE_VARIABLES: Final[dict[str, str]] = {
    "ipv4Addr": "127.0.0.1",
    "ipv4Result": "success",
    "ipv4Domains": "example.com",
    "ipv6Addr": "::1",
    "ipv6Result": "success",
    "ipv6Domains": "example.com",
}


logger = logging.getLogger(__name__)


def render_template(template: str, variables: dict[str, str], *, url: bool = False) -> str:
    """
    Replace ``#{name}`` placeholders in a template.

    Parameters
    ----------
    template : str
        URL or body template.
    variables : dict[str, str]
        Placeholder values; unknown placeholders are left as they are.
    url : bool, optional
        Percent-encode substituted values (for URL templates).

    Returns
    -------
    str
        The rendered text.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return quote(value, safe="") if url else value

    return _PLACEHOLDER_PATTERN.sub(_replace, template)


def parse_headers(text: str) -> dict[str, str]:
    """
    Parse ``Name: value`` lines into a header dictionary.

    Blank lines and lines without a colon are ignored.
    """
    headers: dict[str, str] = {}
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            continue
        headers[name.strip()] = value.strip()
    return headers


def _content_type(body: str) -> str:
    try:
        json.loads(body)
    except ValueError:
        return "application/x-www-form-urlencoded"
    return "application/json"


async def send_webhook(
    url: str,
    body: str,
    headers: str,
    variables: dict[str, str],
    *,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """
    Send one webhook request.

    Parameters
    ----------
    url : str
        URL template.
    body : str
        Body template; GET is used when empty.
    headers : str
        Extra headers, one ``Name: value`` per line.
    variables : dict[str, str]
        Placeholder values.
    client : httpx.AsyncClient | None, optional
        Client to use; a short-lived one is created when omitted.

    Returns
    -------
    httpx.Response
        The upstream response.

    Raises
    ------
    httpx.HTTPError
        If the request could not be sent.
    httpx.InvalidURL
        If the rendered URL is malformed.
    """
    target = render_template(url, variables, url=True)
    request_headers = parse_headers(headers)
    rendered_body = render_template(body, variables)

    if client is None:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as own_client:
            return await _send(own_client, target, rendered_body, request_headers)
    return await _send(client, target, rendered_body, request_headers)


async def _send(
    client: httpx.AsyncClient,
    url: str,
    body: str,
    headers: dict[str, str],
) -> httpx.Response:
    if not body:
        logger.debug("[webhook] GET %s", url)
        response = await client.get(url, headers=headers)
    else:
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = _content_type(body)
        logger.debug("[webhook] POST %s", url)
        response = await client.post(url, content=body.encode("utf-8"), headers=headers)
    logger.info("[webhook] %s responded with %d.", url, response.status_code)
    return response
