"""Error taxonomy for the chat bridge.

Setup errors (identity, auth, connection) abort widget activation.
Steady-state errors (decode, publish) are raised inside the session
router and handled according to the router's decode-error policy.
"""

from __future__ import annotations


class Lp0ChatError(Exception):
    """Base class for every error raised by lp0chat."""


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


class KeyDerivationError(Lp0ChatError):
    """Raised when the persisted seed cannot be turned into a key pair.

    Not recovered automatically: regenerating the seed would strand any
    server-side state keyed to the old public key. Clear the storage
    (``lp0chat reset-identity``) to proceed.
    """


class AuthError(Lp0ChatError):
    """Raised when the credential exchange fails."""


class AuthUnavailableError(AuthError):
    """Raised when the auth endpoint cannot be reached."""


class AuthRejectedError(AuthError):
    """Raised on a non-success response or a response without a token."""


class BrokerError(Lp0ChatError):
    """Raised for broker-level failures."""


class BrokerConnectionError(BrokerError):
    """Raised when the broker connection cannot be established."""


class ConnectionTimeoutError(BrokerConnectionError):
    """Raised when connecting takes longer than the configured timeout."""


class PublishError(BrokerError):
    """Raised when the broker refuses or fails a publish."""


class WidgetConfigError(Lp0ChatError):
    """Raised when widget attributes are missing or malformed."""


# ---------------------------------------------------------------------------
# Steady state
# ---------------------------------------------------------------------------


class DecodeError(Lp0ChatError):
    """Raised when an inbound payload is empty or not valid UTF-8."""


class InvalidPublishError(Lp0ChatError):
    """Raised when an outbound message is missing text or routing fields."""


class ConversationEndedError(InvalidPublishError):
    """Raised when sending after the agent hung up."""
