from lp0chat.auth.credentials import AccessToken, AuthConfig, CredentialExchange

__all__ = [
    "AccessToken",
    "AuthConfig",
    "CredentialExchange",
]
