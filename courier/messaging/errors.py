from __future__ import annotations

from typing import Type


class MessagingError(ValueError):
    """Base for rejections that cross the gateway as {"error": code}."""
    code = "error"


class InvalidParticipantsError(MessagingError):
    code = "invalid-participants"


class NonceExpiredOrUnknown(MessagingError):
    """
    A signed request did not authorize. Raised for an unknown, consumed or
    expired nonce and for a bad signature alike.
    """
    code = "invalid-auth"


class ConversationKeyNotFoundError(MessagingError):
    code = "no-such-key"


class IdentityNotFoundError(MessagingError):
    code = "not-found"


class IdentityExistsError(MessagingError):
    """A public sign key is registered once; re-registration is refused."""
    code = "identity-exists"


class ConversationNotFoundError(MessagingError):
    code = "no-such-conversation"


class AliasNotSetError(MessagingError):
    code = "no-alias"


class InvalidAliasError(MessagingError):
    code = "invalid-alias"


class AliasTakenError(MessagingError):
    code = "alias-taken"


_BY_CODE: dict[str, Type[MessagingError]] = {
    cls.code: cls
    for cls in (
        InvalidParticipantsError,
        NonceExpiredOrUnknown,
        ConversationKeyNotFoundError,
        IdentityNotFoundError,
        IdentityExistsError,
        ConversationNotFoundError,
        AliasNotSetError,
        InvalidAliasError,
        AliasTakenError,
    )
}


def error_from_code(code: str) -> MessagingError:
    cls = _BY_CODE.get(code, MessagingError)
    return cls(code)
