from .config import ProtocolSettings
from .errors import (
    MessagingError,
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
from .models import (
    Credentials,
    Identity,
    SignedPayload,
    SignedRequest,
    StoredMessage,
    WebhookUpdate,
    DecipheredMessage,
    )
from .stores import (
    NonceStore,
    EntityStore,
    Notifier,
    InMemoryNonceStore,
    InMemoryEntityStore,
    )
from .conversation_keys import create_conversation_keys
from .envelope import build_envelope, open_envelope
from .auth import (
    canonical_string_for_auth_sign,
    sign_request,
    build_signed_request,
    issue_nonce,
    verify_signed_request,
    require_signed_request,
    )
from .backend import Backend, LocalBackend, normalize_alias, is_valid_alias
from .gateway import GatewayBackend, dispatch
from .webhooks import HttpWebhookNotifier
from .client import MessagingClient, WebhookResult, create_identity
