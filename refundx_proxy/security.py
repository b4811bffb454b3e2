from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from operator import itemgetter
from types import MappingProxyType
from typing import ClassVar
from urllib.parse import urlencode

SIGNATURE_PARAM = "signature"
HMAC_PARAM = "hmac"
SIGNATURE_PARAMS = frozenset({SIGNATURE_PARAM, HMAC_PARAM})

QueryParams = Mapping[str, str | Sequence[str]]


class RejectionReason(str, Enum):
    MISSING_SHOP = "missing_shop"
    MISSING_SIGNATURE = "missing_signature"
    BAD_SIGNATURE = "bad_signature"
    MISSING_SECRET = "missing_secret"
    UNEXPECTED_FAILURE = "unexpected_failure"


@dataclass(frozen=True)
class RequestDescriptor:
    path: str
    query: QueryParams
    headers: Mapping[str, str]

    @classmethod
    def from_items(
        cls,
        *,
        path: str,
        query_items: Iterable[tuple[str, str]],
        header_items: Iterable[tuple[str, str]] = (),
    ) -> "RequestDescriptor":
        grouped: dict[str, list[str]] = {}
        for key, value in query_items:
            grouped.setdefault(key, []).append(value)
        query = {key: values[0] if len(values) == 1 else tuple(values) for key, values in grouped.items()}

        headers: dict[str, str] = {}
        for name, value in header_items:
            headers.setdefault(name.lower(), value)
        return cls(path=path, query=MappingProxyType(query), headers=MappingProxyType(headers))


@dataclass(frozen=True)
class Authenticated:
    shop: str | None = None


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    convention: str | None = None
    detail: str | None = None


VerificationOutcome = Authenticated | Rejected


def _flatten(value: str | Sequence[str]) -> str:
    if isinstance(value, str):
        return value
    return ",".join(value)


def _remaining_params(query: QueryParams) -> list[tuple[str, str]]:
    pairs = [(key, _flatten(value)) for key, value in query.items() if key not in SIGNATURE_PARAMS]
    pairs.sort(key=itemgetter(0))
    return pairs


def app_proxy_message(path: str, query: QueryParams) -> str:
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{path}?{urlencode(_remaining_params(query))}"


def query_hmac_message(query: QueryParams) -> str:
    return "&".join(f"{key}={value}" for key, value in _remaining_params(query))


def _hmac_sha256(secret: str | bytes, message: str) -> bytes:
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def constant_time_equals(expected: str, supplied: str) -> bool:
    # compare_digest on bytes returns False for unequal lengths instead of raising.
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


@dataclass(frozen=True, repr=False)
class AppProxySignature:
    """Path-scoped signature: hex HMAC over ``<path>?<sorted urlencoded query>``."""

    supplied: str
    param: ClassVar[str] = SIGNATURE_PARAM

    def expected_digests(self, descriptor: RequestDescriptor, secret: str | bytes) -> tuple[str, ...]:
        message = app_proxy_message(descriptor.path, descriptor.query)
        return (_hmac_sha256(secret, message).hex(),)

    def __repr__(self) -> str:
        return "AppProxySignature(supplied=<redacted>)"


@dataclass(frozen=True, repr=False)
class QueryHmac:
    """Sorted-query HMAC, accepted as either a hex or a base64 digest."""

    supplied: str
    param: ClassVar[str] = HMAC_PARAM

    def expected_digests(self, descriptor: RequestDescriptor, secret: str | bytes) -> tuple[str, ...]:
        digest = _hmac_sha256(secret, query_hmac_message(descriptor.query))
        return digest.hex(), base64.b64encode(digest).decode("ascii")

    def __repr__(self) -> str:
        return "QueryHmac(supplied=<redacted>)"


SigningConvention = AppProxySignature | QueryHmac


def select_convention(query: QueryParams) -> SigningConvention | None:
    signature = query.get(SIGNATURE_PARAM)
    if signature is not None and _flatten(signature):
        return AppProxySignature(supplied=_flatten(signature))
    supplied_hmac = query.get(HMAC_PARAM)
    if supplied_hmac is not None and _flatten(supplied_hmac):
        return QueryHmac(supplied=_flatten(supplied_hmac))
    return None


def verify(descriptor: RequestDescriptor, secret: str | bytes | None) -> VerificationOutcome:
    if not secret:
        return Rejected(reason=RejectionReason.MISSING_SECRET)

    convention = select_convention(descriptor.query)
    if convention is None:
        return Rejected(reason=RejectionReason.MISSING_SIGNATURE)

    # Every candidate is compared so a hex match costs the same as a base64 match.
    matches = [
        constant_time_equals(expected, convention.supplied)
        for expected in convention.expected_digests(descriptor, secret)
    ]
    if any(matches):
        return Authenticated()
    return Rejected(reason=RejectionReason.BAD_SIGNATURE, convention=convention.param)
