"""
Cryptographic operations for Roost.

This module provides:
- Key derivation for store files using Argon2id followed by HKDF
- Authenticated encryption of the store payload using AES-GCM
- SecretGuard, which keeps the master passphrase obfuscated in memory
  between the moments it is actually needed
- Best-effort zeroing of mutable buffers
"""

import os
import ctypes
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.exceptions import InvalidTag

from . import config
from .errors import SecretIntegrityError

# ==============================================================================
# CRYPTOGRAPHIC CONSTANTS
# ==============================================================================

# Size of cryptographic salt in bytes (256 bits for Argon2)
SALT_SIZE = 32

# Size of AES-GCM nonce in bytes (96 bits as recommended for AES-GCM)
NONCE_SIZE = 12

# Size of AES-GCM authentication tag in bytes (128 bits)
TAG_SIZE = 16

# Size of encryption key in bytes (256 bits for AES-256)
KEY_SIZE = 32

# SecretGuard uses AES-128-CBC with a fresh key and IV per capture
GUARD_KEY_SIZE = 16
GUARD_IV_SIZE = 16

# ==============================================================================
# KEY DERIVATION FUNCTIONS
# ==============================================================================

def derive_master_key(password: str,
                      salt: Optional[bytes] = None,
                      time_cost: Optional[int] = None,
                      memory_cost: Optional[int] = None,
                      lanes: Optional[int] = None) -> Tuple[bytes, bytes]:
    """
    Derive the store key from a passphrase using Argon2id.

    Args:
        password (str): Master passphrase (encoded to UTF-8)
        salt (bytes, optional): Salt from the store header. A random
            32-byte salt is generated when omitted.
        time_cost (int, optional): Argon2 iterations; defaults to config
        memory_cost (int, optional): Argon2 memory in KiB; defaults to config
        lanes (int, optional): Argon2 parallelism; defaults to config

    Returns:
        Tuple[bytes, bytes]: A tuple containing:
            - master_key: 64 bytes (32 encryption + 32 authentication)
            - salt: The salt used for derivation

    Security Notes:
        - The cost parameters are stored in the file header so a store
          written with one configuration opens under another
        - HKDF separates the encryption half from the authentication half
    """
    if salt is None:
        salt = generate_salt()

    kdf = Argon2id(
        salt=salt,
        length=64,
        iterations=time_cost if time_cost is not None else config.KDF_TIME_COST,
        memory_cost=memory_cost if memory_cost is not None else config.KDF_MEMORY_COST,
        lanes=lanes if lanes is not None else config.KDF_LANES,
    )
    key = kdf.derive(password.encode("utf-8"))

    encryption_key = derive_hkdf_key(key[:32], b"encryption")
    authentication_key = derive_hkdf_key(key[32:], b"authentication")

    return (encryption_key + authentication_key, salt)


def derive_hkdf_key(key_material: bytes, info: bytes) -> bytes:
    """
    Apply HKDF-SHA256 to key material, binding it to a purpose via info.

    Returns:
        bytes: 32-byte derived key
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,  # Argon2 already salted the input
        info=info,
    )
    return hkdf.derive(key_material)


def generate_salt() -> bytes:
    return os.urandom(SALT_SIZE)

# ==============================================================================
# SYMMETRIC ENCRYPTION / DECRYPTION
# ==============================================================================

def _normalize_aes_key(key: bytes) -> bytes:
    if len(key) < KEY_SIZE:
        raise ValueError("Encryption key too short for AES-256")
    return key[:KEY_SIZE]


def encrypt_data(
    encryption_key: bytes,
    data: bytes,
    associated_data: Optional[bytes] = None,
    nonce: Optional[bytes] = None,
) -> Tuple[bytes, bytes, bytes]:
    """
    Encrypt data using AES-GCM authenticated encryption.

    Args:
        encryption_key (bytes): At least 32 bytes; the first 32 are used
        data (bytes): Plaintext
        associated_data (bytes, optional): Authenticated but not encrypted
        nonce (bytes, optional): 12-byte nonce. Pass one only when it has to
            be known before encrypting (e.g. it is part of the AAD); it must
            never repeat under the same key.

    Returns:
        Tuple[bytes, bytes, bytes]: nonce, ciphertext, 16-byte tag
    """
    encryption_key = _normalize_aes_key(encryption_key)

    if nonce is None:
        nonce = os.urandom(NONCE_SIZE)

    aesgcm = AESGCM(encryption_key)
    ciphertext_with_tag = aesgcm.encrypt(nonce, data, associated_data)

    return nonce, ciphertext_with_tag[:-TAG_SIZE], ciphertext_with_tag[-TAG_SIZE:]


def decrypt_data(
    encryption_key: bytes,
    nonce: bytes,
    ciphertext: bytes,
    tag: bytes,
    associated_data: Optional[bytes] = None,
) -> Optional[bytes]:
    """
    Decrypt and verify data encrypted with AES-GCM.

    Returns:
        Optional[bytes]: Plaintext, or None when the tag does not verify
            (wrong key, tampered data or mismatched associated data)
    """
    aesgcm = AESGCM(_normalize_aes_key(encryption_key))
    try:
        return aesgcm.decrypt(nonce, ciphertext + tag, associated_data)
    except InvalidTag:
        return None

# ==============================================================================
# SECURE MEMORY MANAGEMENT
# ==============================================================================

def secure_erase_bytes(data: bytearray) -> None:
    """
    Overwrite a mutable buffer with zeros.

    Security Notes:
        - Python may already have copied the data elsewhere; this only
          clears the buffer it is given
    """
    if not data:
        return

    for i in range(len(data)):
        data[i] = 0

    ctypes.memset(
        ctypes.addressof(ctypes.c_char.from_buffer(data)),
        0,
        len(data)
    )

# ==============================================================================
# MASTER PASSPHRASE GUARD
# ==============================================================================

@dataclass(frozen=True)
class GuardToken:
    """Everything needed to recover one captured secret."""

    ciphertext: bytes = field(repr=False)
    key: bytes = field(repr=False)
    iv: bytes = field(repr=False)


class SecretGuard:
    """
    Keeps the master passphrase encrypted while the session is idle.

    Each capture draws a new random key and IV, prefixes the plaintext with
    a marker, and encrypts it with AES-CBC. reveal() checks the marker on
    the way back; a missing marker means the token was damaged and the
    session cannot trust anything it would do with the result.

    Security Notes:
        - The key sits next to the ciphertext in the same process. This
          stops the passphrase showing up verbatim in a memory dump or swap
          file; it does not stop code running inside the process.
    """

    def __init__(self, marker: bytes = config.SECRET_MARKER):
        self.marker = marker

    def capture(self, secret: Union[str, bytearray]) -> GuardToken:
        """
        Encrypt a secret and return the token holding it.

        A bytearray argument is zeroed once encrypted; a str cannot be.
        """
        if isinstance(secret, str):
            plain = bytearray(secret.encode("utf-8"))
        else:
            plain = bytearray(secret)
        buffer = bytearray(self.marker) + plain

        key = os.urandom(GUARD_KEY_SIZE)
        iv = os.urandom(GUARD_IV_SIZE)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = bytearray(padder.update(bytes(buffer)) + padder.finalize())
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(bytes(padded)) + encryptor.finalize()

        secure_erase_bytes(padded)
        secure_erase_bytes(buffer)
        secure_erase_bytes(plain)
        if isinstance(secret, bytearray):
            secure_erase_bytes(secret)

        return GuardToken(ciphertext=ciphertext, key=key, iv=iv)

    def reveal(self, token: GuardToken) -> str:
        """
        Decrypt a token back to the secret.

        Raises:
            SecretIntegrityError: Padding or marker check failed
        """
        decryptor = Cipher(algorithms.AES(token.key), modes.CBC(token.iv)).decryptor()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            padded = decryptor.update(token.ciphertext) + decryptor.finalize()
            plain = unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise SecretIntegrityError(
                "Failed to properly decrypt my copy of the master password"
            ) from e

        if not plain.startswith(self.marker):
            raise SecretIntegrityError(
                "Failed to properly decrypt my copy of the master password"
            )
        try:
            return plain[len(self.marker):].decode("utf-8")
        except UnicodeDecodeError as e:
            raise SecretIntegrityError("Recovered master password is not valid text") from e
