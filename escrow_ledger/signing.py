"""Issuer signatures over order parameters.

The issuer attests ``(order_id, amount, seller, nonce)`` with an Ed25519
key. The signed message is built in two steps:

1. ``order_digest``: SHA-256 over a fixed-layout encoding. Integers are
   32-byte big-endian; the seller is a 4-byte big-endian length prefix
   followed by its UTF-8 bytes. No field can bleed into its neighbour.
2. ``signed_message``: SHA-256 over ``ORDER_SIGNATURE_PREFIX + digest``.
   The prefix keeps these signatures from ever validating a message of
   another format signed by the same key.

Ed25519 has no public-key recovery, so instead of recovering a signer
and comparing it with the issuer, the verifier checks the signature
directly under the issuer's public key. The accepted set is the same.
"""

from __future__ import annotations

import hashlib
from typing import Protocol, runtime_checkable

from nacl.encoding import HexEncoder
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from escrow_ledger.ledger.types import is_uint256

ORDER_SIGNATURE_PREFIX = b"\x19Escrow Signed Order:\n32"
SIGNATURE_LENGTH = 64


def encode_order(order_id: int, amount: int, seller: str, nonce: int) -> bytes:
    """Canonical byte encoding of the signed order fields.

    Raises:
        ValueError: If an integer field is outside the uint256 range.
    """
    for name, value in (("order_id", order_id), ("amount", amount), ("nonce", nonce)):
        if not is_uint256(value):
            raise ValueError(f"{name} must be a uint256, got {value!r}")
    seller_bytes = seller.encode("utf-8")
    buf = bytearray()
    buf += order_id.to_bytes(32, "big")
    buf += amount.to_bytes(32, "big")
    buf += len(seller_bytes).to_bytes(4, "big")
    buf += seller_bytes
    buf += nonce.to_bytes(32, "big")
    return bytes(buf)


def order_digest(order_id: int, amount: int, seller: str, nonce: int) -> bytes:
    """SHA-256 binding hash of the order fields."""
    return hashlib.sha256(encode_order(order_id, amount, seller, nonce)).digest()


def signed_message(digest: bytes) -> bytes:
    """Domain-separated message that is actually signed."""
    return hashlib.sha256(ORDER_SIGNATURE_PREFIX + digest).digest()


@runtime_checkable
class SignatureVerifier(Protocol):
    """Checks that the trusted issuer attested an order's parameters.

    Implementations must be pure: no I/O and no nonce bookkeeping.
    """

    @property
    def trusted_issuer(self) -> str:
        """Identity of the issuer whose signatures are accepted."""
        ...

    def verify(
        self,
        order_id: int,
        amount: int,
        seller: str,
        nonce: int,
        signature: bytes,
    ) -> bool:
        """True if signature attests these exact parameters."""
        ...


class Ed25519SignatureVerifier:
    """Verify order signatures under one Ed25519 public key.

    The issuer identity is the lowercase hex encoding of the verify key.
    """

    def __init__(self, issuer_public_key: str) -> None:
        key_hex = issuer_public_key.lower()
        if key_hex.startswith("0x"):
            key_hex = key_hex[2:]
        self._verify_key = VerifyKey(key_hex.encode("ascii"), encoder=HexEncoder)
        self._issuer = key_hex

    @property
    def trusted_issuer(self) -> str:
        return self._issuer

    def verify(
        self,
        order_id: int,
        amount: int,
        seller: str,
        nonce: int,
        signature: bytes,
    ) -> bool:
        if not isinstance(signature, bytes | bytearray):
            return False
        if len(signature) != SIGNATURE_LENGTH:
            return False
        try:
            message = signed_message(order_digest(order_id, amount, seller, nonce))
            self._verify_key.verify(message, bytes(signature))
        except (CryptoError, ValueError, TypeError, AttributeError):
            return False
        return True


class OrderSigner:
    """Issuer-side counterpart of Ed25519SignatureVerifier.

    Holds the private key in memory only.
    """

    def __init__(self, signing_key: SigningKey) -> None:
        self._signing_key = signing_key

    @classmethod
    def generate(cls) -> OrderSigner:
        """New signer with a fresh random key."""
        return cls(SigningKey.generate())

    @classmethod
    def from_hex(cls, seed_hex: str) -> OrderSigner:
        """Signer from a hex-encoded 32-byte seed."""
        if seed_hex.startswith("0x"):
            seed_hex = seed_hex[2:]
        return cls(SigningKey(seed_hex.encode("ascii"), encoder=HexEncoder))

    @property
    def public_key(self) -> str:
        """Hex verify key; this is the issuer (and administrator) identity."""
        return self._signing_key.verify_key.encode(encoder=HexEncoder).decode("ascii")

    @property
    def seed_hex(self) -> str:
        return self._signing_key.encode(encoder=HexEncoder).decode("ascii")

    def sign_order(self, order_id: int, amount: int, seller: str, nonce: int) -> bytes:
        """64-byte detached signature over the prefixed order digest."""
        message = signed_message(order_digest(order_id, amount, seller, nonce))
        return self._signing_key.sign(message).signature
