"""
Roost store file format.

A store file is one encrypted blob:

    +--------------------+  128-byte header, SHA-256 self-checksum
    | header             |
    +--------------------+
    | payload            |  AES-256-GCM(zlib(JSON tree)) + 16-byte tag
    +--------------------+
    | footer             |  end magic + total file size
    +--------------------+

Header Structure (128 bytes):
    Bytes 0-5:    Magic bytes "ROOST\\0"
    Byte 6:       Format version
    Bytes 7-8:    Header size (LE)
    Bytes 9-12:   Argon2id time cost (LE)
    Bytes 13-16:  Argon2id memory cost in KiB (LE)
    Bytes 17-20:  Argon2id lanes (LE)
    Bytes 21-52:  Salt (32 bytes)
    Bytes 53-64:  GCM nonce (12 bytes)
    Bytes 65-72:  Payload size including tag (LE)
    Bytes 73-104: SHA-256 of the header with this field zeroed
    Bytes 105-127: Reserved padding

The first 73 bytes are also the payload's associated data, so neither the
KDF parameters nor the sizes can be altered without the passphrase.
"""

import hashlib
import hmac
import json
import os
import struct
import zlib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from . import config
from .crypto import (
    KEY_SIZE, NONCE_SIZE, TAG_SIZE, decrypt_data, derive_master_key,
    encrypt_data, generate_salt,
)
from .errors import StoreLoadError

# ==============================================================================
# FORMAT CONSTANTS AND UTILITY CLASS
# ==============================================================================

class VaultFormat:
    """Static helpers for the binary layout described in the module docstring."""

    MAGIC = b"ROOST\0"
    FOOTER_MAGIC = b"RST_END\0"
    FORMAT_VERSION = 1

    HEADER_SIZE = 128
    FIELDS = struct.Struct("<6sBHIII32s12sQ")
    CHECKSUM_OFFSET = FIELDS.size
    CHECKSUM_SIZE = 32
    FOOTER = struct.Struct("<8sQ")

    @staticmethod
    def create_header(time_cost: int, memory_cost: int, lanes: int,
                      salt: bytes, nonce: bytes, payload_size: int) -> bytes:
        fields = VaultFormat.FIELDS.pack(
            VaultFormat.MAGIC,
            VaultFormat.FORMAT_VERSION,
            VaultFormat.HEADER_SIZE,
            time_cost,
            memory_cost,
            lanes,
            salt,
            nonce,
            payload_size,
        )
        padding = b"\x00" * (VaultFormat.HEADER_SIZE - len(fields) - VaultFormat.CHECKSUM_SIZE)
        checksum = hashlib.sha256(
            fields + b"\x00" * VaultFormat.CHECKSUM_SIZE + padding
        ).digest()
        return fields + checksum + padding

    @staticmethod
    def validate_header(header: bytes) -> Tuple[bool, Dict]:
        """
        Validate a store header for integrity and format compliance.

        Returns:
            Tuple[bool, Dict]:
                - bool: True if header is valid
                - Dict: Parsed header fields, or {"error": message}
        """
        if len(header) < VaultFormat.HEADER_SIZE:
            return False, {"error": "File is too short to be a Roost store"}

        try:
            magic, version, header_size, time_cost, memory_cost, lanes, \
                salt, nonce, payload_size = VaultFormat.FIELDS.unpack(
                    header[:VaultFormat.FIELDS.size]
                )
        except struct.error as e:
            return False, {"error": f"Header parsing error: {e}"}

        if magic != VaultFormat.MAGIC:
            return False, {"error": "Not a Roost store file"}

        if version != VaultFormat.FORMAT_VERSION:
            return False, {"error": f"Unsupported store version: {version}"}

        start = VaultFormat.CHECKSUM_OFFSET
        end = start + VaultFormat.CHECKSUM_SIZE
        stored = header[start:end]
        zeroed = bytearray(header[:VaultFormat.HEADER_SIZE])
        zeroed[start:end] = b"\x00" * VaultFormat.CHECKSUM_SIZE
        if not hmac.compare_digest(stored, hashlib.sha256(zeroed).digest()):
            return False, {"error": "Header checksum mismatch - file may be corrupted"}

        if lanes < 1 or time_cost < 1 or memory_cost < 8 * lanes:
            return False, {"error": "Header carries invalid key derivation parameters"}

        return True, {
            "version": version,
            "header_size": header_size,
            "time_cost": time_cost,
            "memory_cost": memory_cost,
            "lanes": lanes,
            "salt": salt,
            "nonce": nonce,
            "payload_size": payload_size,
        }

    @staticmethod
    def associated_data(header: bytes) -> bytes:
        return bytes(header[:VaultFormat.FIELDS.size])

    @staticmethod
    def create_footer(file_size: int) -> bytes:
        return VaultFormat.FOOTER.pack(VaultFormat.FOOTER_MAGIC, file_size)

    @staticmethod
    def parse_footer(footer: bytes) -> Tuple[bytes, int]:
        if len(footer) < VaultFormat.FOOTER.size:
            raise ValueError(f"Insufficient footer size: {len(footer)} bytes")
        return VaultFormat.FOOTER.unpack(footer[-VaultFormat.FOOTER.size:])

    @staticmethod
    def compress_data(data: bytes) -> bytes:
        return zlib.compress(data, level=zlib.Z_BEST_COMPRESSION)

    @staticmethod
    def decompress_data(data: bytes) -> bytes:
        return zlib.decompress(data)

# ==============================================================================
# READ / WRITE
# ==============================================================================

def write_vault_file(path: Path,
                     payload: Dict[str, Any],
                     passphrase: str,
                     time_cost: Optional[int] = None,
                     memory_cost: Optional[int] = None,
                     lanes: Optional[int] = None) -> None:
    """
    Encrypt payload under passphrase and write it to path.

    Args:
        path (Path): Destination; overwritten if present
        payload (dict): JSON-serializable store contents
        passphrase (str): Master passphrase
        time_cost, memory_cost, lanes (int, optional): Argon2id parameters;
            config values are used when omitted

    Raises:
        OSError: The file could not be written
    """
    time_cost = time_cost if time_cost is not None else config.KDF_TIME_COST
    memory_cost = memory_cost if memory_cost is not None else config.KDF_MEMORY_COST
    lanes = lanes if lanes is not None else config.KDF_LANES

    salt = generate_salt()
    key, _ = derive_master_key(passphrase, salt, time_cost, memory_cost, lanes)
    plain = VaultFormat.compress_data(json.dumps(payload, ensure_ascii=False).encode("utf-8"))

    # The nonce is part of the authenticated header, so it is drawn up front
    nonce = os.urandom(NONCE_SIZE)
    header = VaultFormat.create_header(
        time_cost, memory_cost, lanes, salt, nonce, payload_size=len(plain) + TAG_SIZE
    )
    _, ciphertext, tag = encrypt_data(
        key[:KEY_SIZE], plain, VaultFormat.associated_data(header), nonce=nonce
    )

    body = header + ciphertext + tag
    footer = VaultFormat.create_footer(len(body) + VaultFormat.FOOTER.size)

    with open(path, "wb") as f:
        f.write(body)
        f.write(footer)


def read_vault_file(path: Path, passphrase: str) -> Dict[str, Any]:
    """
    Read and decrypt a store file.

    Raises:
        StoreLoadError: The file is missing, unreadable, not a store,
            damaged, or the passphrase is wrong
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise StoreLoadError(f"Cannot open: {path}: {e.strerror or e}") from e

    valid, info = VaultFormat.validate_header(raw)
    if not valid:
        raise StoreLoadError(f"Cannot open: {path}: {info['error']}")

    footer_start = len(raw) - VaultFormat.FOOTER.size
    try:
        footer_magic, file_size = VaultFormat.parse_footer(raw[footer_start:])
    except (ValueError, struct.error) as e:
        raise StoreLoadError(f"Cannot open: {path}: {e}") from e
    if footer_magic != VaultFormat.FOOTER_MAGIC or file_size != len(raw):
        raise StoreLoadError(f"Cannot open: {path}: file is truncated or corrupted")

    payload = raw[VaultFormat.HEADER_SIZE:footer_start]
    if len(payload) != info["payload_size"] or len(payload) < TAG_SIZE:
        raise StoreLoadError(f"Cannot open: {path}: payload size mismatch")

    key, _ = derive_master_key(
        passphrase, info["salt"], info["time_cost"], info["memory_cost"], info["lanes"]
    )
    plain = decrypt_data(
        key[:KEY_SIZE], info["nonce"], payload[:-TAG_SIZE], payload[-TAG_SIZE:],
        VaultFormat.associated_data(raw),
    )
    if plain is None:
        raise StoreLoadError(f"Cannot open: {path}: wrong passphrase or damaged file")

    try:
        return json.loads(VaultFormat.decompress_data(plain).decode("utf-8"))
    except (zlib.error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StoreLoadError(f"Cannot open: {path}: store contents are unreadable") from e
