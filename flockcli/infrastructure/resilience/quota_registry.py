"""Static table of per-window request quotas.

Maps (operation class, auth mode) to the number of requests the platform
allows per 15-minute window. Zero means the class is not paced at all.
"""

import logging
from typing import Dict, Mapping, Optional, Tuple

from flockcli.domain.models.common import AuthMode, OperationClass
from flockcli.domain.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

QuotaKey = Tuple[OperationClass, AuthMode]

# Requests per 15-minute window, as documented for the v1.1 endpoints.
DEFAULT_QUOTAS: Dict[QuotaKey, int] = {
    (OperationClass.ASSOCIATES, AuthMode.USER_CONTEXT): 15,
    (OperationClass.ASSOCIATES, AuthMode.APP_CONTEXT): 15,
    (OperationClass.DIRECT_MESSAGES, AuthMode.USER_CONTEXT): 15,
    (OperationClass.DIRECT_MESSAGES, AuthMode.APP_CONTEXT): 15,
    (OperationClass.TIMELINE, AuthMode.USER_CONTEXT): 900,
    (OperationClass.TIMELINE, AuthMode.APP_CONTEXT): 1500,
    (OperationClass.LOOKUP, AuthMode.USER_CONTEXT): 900,
    (OperationClass.LOOKUP, AuthMode.APP_CONTEXT): 300,
    (OperationClass.DEFAULT, AuthMode.USER_CONTEXT): 180,
    (OperationClass.DEFAULT, AuthMode.APP_CONTEXT): 450,
}


class QuotaRegistry:
    """Lookup table of allowed requests per window."""

    def __init__(
        self,
        quotas: Optional[Mapping[QuotaKey, int]] = None,
        overrides: Optional[Mapping[QuotaKey, int]] = None,
    ):
        """Initializes the registry.

        Args:
            quotas: Full table to use instead of DEFAULT_QUOTAS.
            overrides: Individual cells replacing entries of the table.

        Raises:
            ConfigurationError: If any cell is negative or not an integer.
        """
        table = dict(DEFAULT_QUOTAS if quotas is None else quotas)
        table.update(overrides or {})
        for key, allowed in table.items():
            if isinstance(allowed, bool) or not isinstance(allowed, int) or allowed < 0:
                raise ConfigurationError(f"Quota for {key} must be a non-negative integer, got {allowed!r}")
        self._table = table
        logger.debug(f"QuotaRegistry initialized with {len(table)} entries")

    def allowed_per_window(self, operation_class: OperationClass, auth_mode: AuthMode) -> int:
        """Returns how many requests of this class are allowed per window.

        Raises:
            ConfigurationError: If the combination is not in the table.
        """
        try:
            return self._table[(operation_class, auth_mode)]
        except (KeyError, TypeError) as e:
            logger.error(f"No quota defined for operation class {operation_class!r} with auth mode {auth_mode!r}")
            raise ConfigurationError(
                f"No quota defined for operation class {operation_class!r} with auth mode {auth_mode!r}"
            ) from e

    def items(self):
        """All (key, allowed) pairs, in table order."""
        return self._table.items()
