"""Request signing, nonces and clock offsets."""

from src.exchange.signing.clock import NonceGenerator, OffsetClock, SystemClock
from src.exchange.signing.signers import (
    ClientIdHmacSha256Signer,
    FormHmacSha256Signer,
    FormHmacSha512Signer,
    KrakenSigner,
    PayloadHmacSha384Signer,
    PrehashHmacSha256Signer,
    Signature,
)

__all__ = [
    "ClientIdHmacSha256Signer",
    "FormHmacSha256Signer",
    "FormHmacSha512Signer",
    "KrakenSigner",
    "NonceGenerator",
    "OffsetClock",
    "PayloadHmacSha384Signer",
    "PrehashHmacSha256Signer",
    "Signature",
    "SystemClock",
]
