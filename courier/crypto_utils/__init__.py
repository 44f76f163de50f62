from .encoding import (
    SecureRandom,
    OsRandom,
    b64_encode,
    b64_decode,
    canonical_string,
    key_fingerprint,
    )
from .errors import (
    CryptoError,
    KeyFormatError,
    DecryptionError,
    AuthenticationError,
    PlaintextTooLargeError,
    InvalidSignatureError,
    )
from .keys import (
    KeyPair,
    generate_key_pair,
    generate_symmetric_key,
    load_public_key,
    load_private_key,
    load_symmetric_key,
    public_key_from_private,
    )
from .asymmetric import (
    encrypt_asymmetric,
    decrypt_asymmetric,
    sign,
    verify,
    )
from .symmetric import (
    encrypt_symmetric,
    decrypt_symmetric,
    )
