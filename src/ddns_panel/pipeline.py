"""
Configuration-save pipeline.

A save request goes through the bootstrap guard, credential validation and
the domain merge. Only when all of them pass is the new configuration
committed (swapped in memory and persisted); then one synchronization pass
is triggered, whether or not the write succeeded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from pydantic import ValidationError

from ddns_panel.errors import (
    ConcurrentUpdateError,
    MissingCredentialsError,
    PersistenceError,
    RequestParseError,
    SaveRejectedError,
)
from ddns_panel.masking import dns_conf_json
from ddns_panel.merge import merge_domain_configs
from ddns_panel.models import SaveRequest, SaveResponse

if TYPE_CHECKING:
    from typing import Final

    from ddns_panel.bootstrap import BootstrapWindow
    from ddns_panel.credentials import PasswordPolicy
    from ddns_panel.i18n import Language
    from ddns_panel.models import Configuration
    from ddns_panel.service import ConfigService


RESULT_OK: Final[str] = "ok"

# Attempts at committing when concurrent saves keep moving the version
MAX_COMMIT_ATTEMPTS: Final[int] = 3


logger = logging.getLogger(__name__)


class UpdateTrigger(Protocol):
    """Receiver of "configuration changed" events."""

    def trigger(self) -> None:
        """Request one synchronization pass without waiting for it."""
        ...


class SavePipeline:
    """
    Validates, merges, persists and publishes configuration saves.

    Parameters
    ----------
    service : ConfigService
        Owner of the live configuration.
    window : BootstrapWindow
        Guard for unauthenticated first-time setup.
    policy : PasswordPolicy
        Password strength policy.
    trigger : UpdateTrigger
        Receiver of the post-save synchronization request.
    """

    def __init__(
        self,
        service: ConfigService,
        window: BootstrapWindow,
        policy: PasswordPolicy,
        trigger: UpdateTrigger,
    ) -> None:
        self.service = service
        self.window = window
        self.policy = policy
        self.trigger = trigger

    def save(self, body: bytes | str, lang: Language) -> SaveResponse:
        """
        Handle one save request.

        Parameters
        ----------
        body : bytes | str
            Raw JSON request body.
        lang : Language
            Language of the result message.

        Returns
        -------
        SaveResponse
            ``result="ok"`` with the masked domain list, or a localized
            error message with ``dnsConf="[]"``.
        """
        try:
            request = self._parse(body)
            config = self._commit_with_retry(request, lang)
        except SaveRejectedError as e:
            message = e.localize(lang)
            logger.warning("[save] rejected: %s", message)
            return SaveResponse(result=message)

        logger.info("[save] ok, %d domain entries.", len(config.dns_conf))
        return SaveResponse(result=RESULT_OK, dns_conf=dns_conf_json(config.dns_conf))

    @staticmethod
    def _parse(body: bytes | str) -> SaveRequest:
        try:
            return SaveRequest.model_validate_json(body)
        except ValidationError as e:
            logger.debug("[save] invalid body: %s", e)
            raise RequestParseError from e

    def _commit_with_retry(self, request: SaveRequest, lang: Language) -> Configuration:
        # Hashing is slow; a retry reuses the hash of the first attempt
        password_hash = None
        for attempt in range(1, MAX_COMMIT_ATTEMPTS + 1):
            current, version = self.service.get()
            new_config, warnings = self.build(request, current, lang, password_hash=password_hash)
            if request.password:
                password_hash = new_config.password
            try:
                self.service.commit(version, new_config)
            except ConcurrentUpdateError:
                logger.info("[save] configuration changed concurrently (attempt %d).", attempt)
                continue
            except PersistenceError:
                self._publish(warnings)
                raise
            self._publish(warnings)
            return new_config
        raise ConcurrentUpdateError

    def _publish(self, warnings: list[str]) -> None:
        for warning in warnings:
            logger.warning("[save] %s", warning)
        self.trigger.trigger()

    def build(
        self,
        request: SaveRequest,
        current: Configuration,
        lang: Language,
        *,
        password_hash: str | None = None,
    ) -> tuple[Configuration, list[str]]:
        """
        Build the configuration that results from applying a save request.

        Nothing is mutated and nothing is logged; every check runs before the
        result is produced.

        Parameters
        ----------
        request : SaveRequest
            Parsed request.
        current : Configuration
            Configuration the request applies to.
        lang : Language
            Language of merge warnings.
        password_hash : str | None, optional
            Hash of ``request.password`` computed by an earlier attempt.

        Returns
        -------
        tuple[Configuration, list[str]]
            The new configuration and the merge warnings.

        Raises
        ------
        BootstrapWindowError
            If the bootstrap window forbids this save.
        WeakPasswordError
            If the new password is too weak.
        MissingCredentialsError
            If the result would lack a username or password.
        """
        username = request.username.strip()
        password = request.password

        self.window.check_allowed(
            has_persisted_config=self.service.has_persisted,
            existing_username_empty=not current.username,
            existing_password_empty=not current.password,
            new_username=username,
            new_password=password,
        )

        if not password:
            password_hash = current.password
        elif password_hash is None:
            password_hash = self.policy.hash_password(
                password,
                wan_access_allowed=not request.not_allow_wan_access,
            )

        if not username or not password_hash:
            raise MissingCredentialsError

        merged = merge_domain_configs(request.dns_conf, current.dns_conf, lang)

        config = current.model_copy(
            update={
                "username": username,
                "password": password_hash,
                "not_allow_wan_access": request.not_allow_wan_access,
                "webhook_url": request.webhook_url.strip(),
                "webhook_request_body": request.webhook_request_body.strip(),
                "webhook_headers": request.webhook_headers.strip(),
                "dns_conf": merged.domains,
            },
        )
        return config, merged.warnings
