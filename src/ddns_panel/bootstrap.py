"""
Bootstrap window guard.

An instance that has never been configured, or never had credentials set,
accepts unauthenticated setup only during a short window after the process
starts. Once the window has expired the only way to reopen it is to restart
the process.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from ddns_panel.errors import BootstrapWindowError, CredentialsWindowError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Final


DEFAULT_WINDOW_SECONDS: Final[float] = 5 * 60


logger = logging.getLogger(__name__)


class BootstrapWindow:
    """
    Time window after process start in which first-time setup is allowed.

    Elapsed time is measured with a monotonic clock, so wall-clock
    adjustments neither extend nor shorten the window.

    Parameters
    ----------
    window_seconds : float, optional
        Length of the window in seconds.
    clock : Callable[[], float], optional
        Monotonic clock, ``time.monotonic`` by default.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._started_at = clock()

    @property
    def elapsed(self) -> float:
        """Seconds since the window was armed."""
        return self._clock() - self._started_at

    @property
    def expired(self) -> bool:
        """Whether the window has closed."""
        return self.elapsed > self.window_seconds

    @property
    def minutes(self) -> int:
        """Window length in whole minutes, as shown to users."""
        return max(1, round(self.window_seconds / 60))

    def check_allowed(
        self,
        *,
        has_persisted_config: bool,
        existing_username_empty: bool,
        existing_password_empty: bool,
        new_username: str,
        new_password: str,
    ) -> None:
        """
        Check whether a save request may proceed.

        Parameters
        ----------
        has_persisted_config : bool
            Whether a configuration has ever been persisted.
        existing_username_empty : bool
            Whether the current username is empty.
        existing_password_empty : bool
            Whether the current password hash is empty.
        new_username : str
            Submitted (trimmed) username.
        new_password : str
            Submitted password.

        Raises
        ------
        BootstrapWindowError
            If this is the first configuration and the window has expired.
        CredentialsWindowError
            If credentials were never set, the request sets them and the
            window has expired.
        """
        if not self.expired:
            return

        if not has_persisted_config:
            logger.warning(
                "Rejected initial configuration: bootstrap window expired %.0fs ago.",
                self.elapsed - self.window_seconds,
            )
            raise BootstrapWindowError(minutes=self.minutes)

        if (
            existing_username_empty
            and existing_password_empty
            and (new_username or new_password)
        ):
            logger.warning(
                "Rejected first credentials: bootstrap window expired %.0fs ago.",
                self.elapsed - self.window_seconds,
            )
            raise CredentialsWindowError(minutes=self.minutes)
