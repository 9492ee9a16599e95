"""NIP-44 version 2 payload encryption.

    conversation_key = HKDF-extract(salt="nip44-v2", ikm=ECDH(a, B).x)
    chacha_key, chacha_nonce, hmac_key = HKDF-expand(conversation_key, info=nonce, 76)
    payload = base64(0x02 || nonce || ChaCha20(padded plaintext) || HMAC-SHA256(nonce || ciphertext))
"""

import base64
import hashlib
import hmac
import math
import secrets
import struct

from coincurve.keys import PrivateKey, PublicKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from notifications.errors import EnvelopeError

VERSION = 2
SALT = b"nip44-v2"
MIN_PLAINTEXT_SIZE = 1
MAX_PLAINTEXT_SIZE = 65535


def get_conversation_key(private_key_hex: str, public_key_hex: str) -> bytes:
    """Symmetric key shared by the two parties; identical from either side."""
    try:
        private_key = PrivateKey.from_hex(private_key_hex)
        public_key = PublicKey(b"\x02" + bytes.fromhex(public_key_hex))
    except ValueError as exc:
        raise EnvelopeError("Invalid key for NIP-44 conversation") from exc

    shared_x = public_key.multiply(private_key.secret).format(compressed=True)[1:]
    return hmac.new(SALT, shared_x, hashlib.sha256).digest()


def _message_keys(conversation_key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    keys = HKDFExpand(algorithm=hashes.SHA256(), length=76, info=nonce).derive(conversation_key)
    return keys[0:32], keys[32:44], keys[44:76]


def calc_padded_len(unpadded_len: int) -> int:
    if unpadded_len <= 32:
        return 32
    next_power = 1 << (math.floor(math.log2(unpadded_len - 1)) + 1)
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * ((unpadded_len - 1) // chunk + 1)


def _pad(plaintext: str) -> bytes:
    data = plaintext.encode("utf-8")
    if not MIN_PLAINTEXT_SIZE <= len(data) <= MAX_PLAINTEXT_SIZE:
        raise EnvelopeError(f"Plaintext must be {MIN_PLAINTEXT_SIZE}-{MAX_PLAINTEXT_SIZE} bytes, got {len(data)}")
    return struct.pack(">H", len(data)) + data + bytes(calc_padded_len(len(data)) - len(data))


def _unpad(padded: bytes) -> str:
    (length,) = struct.unpack(">H", padded[:2])
    data = padded[2 : 2 + length]
    if length < MIN_PLAINTEXT_SIZE or len(data) != length or len(padded) != 2 + calc_padded_len(length):
        raise EnvelopeError("Invalid padding")
    return data.decode("utf-8")


def _chacha20(key: bytes, nonce: bytes, data: bytes) -> bytes:
    # cryptography takes a 16 byte nonce: 4 byte little-endian counter + 12 byte nonce
    cipher = Cipher(algorithms.ChaCha20(key, b"\x00\x00\x00\x00" + nonce), mode=None)
    return cipher.encryptor().update(data)


def _hmac_aad(key: bytes, message: bytes, aad: bytes) -> bytes:
    return hmac.new(key, aad + message, hashlib.sha256).digest()


def encrypt(plaintext: str, conversation_key: bytes, nonce: bytes | None = None) -> str:
    nonce = nonce or secrets.token_bytes(32)
    if len(nonce) != 32:
        raise EnvelopeError("Nonce must be 32 bytes")

    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    ciphertext = _chacha20(chacha_key, chacha_nonce, _pad(plaintext))
    mac = _hmac_aad(hmac_key, ciphertext, nonce)
    return base64.b64encode(bytes([VERSION]) + nonce + ciphertext + mac).decode("ascii")


def decrypt(payload: str, conversation_key: bytes) -> str:
    if not payload or payload[0] == "#":
        raise EnvelopeError("Unsupported encryption version")
    if not 132 <= len(payload) <= 87472:
        raise EnvelopeError("Invalid payload length")

    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as exc:
        raise EnvelopeError("Payload is not valid base64") from exc

    if data[0] != VERSION:
        raise EnvelopeError(f"Unknown encryption version {data[0]}")

    nonce, ciphertext, mac = data[1:33], data[33:-32], data[-32:]
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    if not hmac.compare_digest(_hmac_aad(hmac_key, ciphertext, nonce), mac):
        raise EnvelopeError("Invalid MAC")

    try:
        return _unpad(_chacha20(chacha_key, chacha_nonce, ciphertext))
    except UnicodeDecodeError as exc:
        raise EnvelopeError("Decrypted payload is not UTF-8") from exc
