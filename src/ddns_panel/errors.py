"""
Exceptions raised by the configuration-save pipeline.

Rejections carry a message catalog key rather than a ready-made string, so
that the same error can be rendered in the requester's language.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ddns_panel.i18n import translate

if TYPE_CHECKING:
    from typing import Any

    from ddns_panel.i18n import Language


class SaveRejectedError(Exception):
    """
    Base class for errors that abort a save request.

    Attributes
    ----------
    key : str
        Message catalog key.
    params : dict[str, Any]
        Values substituted into the catalog message.
    """

    key: str = "save_failed"

    def __init__(self, **params: Any) -> None:
        """
        Initialize SaveRejectedError.

        Parameters
        ----------
        **params : Any
            Values substituted into the catalog message.
        """
        self.params = params
        super().__init__(f"{self.key}: {params}" if params else self.key)

    def localize(self, lang: Language) -> str:
        """
        Render the error message in the given language.

        Parameters
        ----------
        lang : Language
            Target language.

        Returns
        -------
        str
            Localized message.
        """
        return translate(lang, self.key, **self.params)


class RequestParseError(SaveRejectedError):
    """The request body is not a valid save request."""

    key = "parse_failed"


class BootstrapWindowError(SaveRejectedError):
    """Initial setup or first credentials arrived after the bootstrap window."""

    key = "bootstrap_first_time"


class CredentialsWindowError(BootstrapWindowError):
    """Credentials were never set and the bootstrap window has expired."""

    key = "bootstrap_credentials"


class WeakPasswordError(SaveRejectedError):
    """The submitted password does not meet the strength policy."""

    key = "weak_password"


class MissingCredentialsError(SaveRejectedError):
    """The resulting configuration would have no username or password."""

    key = "missing_credentials"


class PersistenceError(SaveRejectedError):
    """
    Writing the configuration to durable storage failed.

    The in-memory configuration already reflects the attempted change when
    this is raised from a commit.
    """

    key = "save_failed"


class ConcurrentUpdateError(SaveRejectedError):
    """The configuration changed between snapshot and commit."""

    key = "concurrent_update"


class ConfigNotFoundError(Exception):
    """No configuration has been persisted yet."""
