from __future__ import annotations

import logging

from fastapi import Request, status

from refundx_proxy.security import (
    HMAC_PARAM,
    Authenticated,
    Rejected,
    RejectionReason,
    RequestDescriptor,
    VerificationOutcome,
    verify,
)
from refundx_proxy.shop_domain import normalize_shop, resolve_shop_candidate

logger = logging.getLogger(__name__)

_REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.MISSING_SHOP: status.HTTP_400_BAD_REQUEST,
    RejectionReason.MISSING_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.BAD_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.MISSING_SECRET: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RejectionReason.UNEXPECTED_FAILURE: status.HTTP_401_UNAUTHORIZED,
}


class ProxyAuthError(RuntimeError):
    def __init__(self, *, error: str, status_code: int, detail: str | None = None) -> None:
        super().__init__(detail or error)
        self.error = error
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def from_rejection(cls, rejected: Rejected) -> "ProxyAuthError":
        return cls(
            error=rejection_error_code(rejected),
            status_code=_REJECTION_STATUS[rejected.reason],
            detail=rejected.detail,
        )

    def to_content(self) -> dict[str, str]:
        content = {"error": self.error}
        if self.detail is not None:
            content["detail"] = self.detail
        return content


def rejection_error_code(rejected: Rejected) -> str:
    if rejected.reason is RejectionReason.BAD_SIGNATURE and rejected.convention == HMAC_PARAM:
        return "bad_hmac"
    if rejected.reason is RejectionReason.UNEXPECTED_FAILURE:
        return "verify_failed"
    return rejected.reason.value


class ProxyAuthGate:
    """Authenticates App Proxy requests before any proxied route runs.

    The shared secret is fixed at construction; ``authenticate`` keeps no state
    between calls, so one gate serves every request concurrently.
    """

    def __init__(self, secret: str | None) -> None:
        self._secret = secret or None

    @property
    def configured(self) -> bool:
        return self._secret is not None

    def authenticate(self, descriptor: RequestDescriptor) -> VerificationOutcome:
        try:
            outcome = self._authenticate(descriptor)
        except Exception as exc:
            logger.warning(
                "Proxy verification raised",
                extra={"path": descriptor.path, "exception_type": type(exc).__name__},
                exc_info=True,
            )
            return Rejected(reason=RejectionReason.UNEXPECTED_FAILURE, detail=str(exc) or type(exc).__name__)

        if isinstance(outcome, Rejected):
            log = logger.error if outcome.reason is RejectionReason.MISSING_SECRET else logger.info
            log(
                "Proxy request rejected",
                extra={"path": descriptor.path, "reason": outcome.reason.value, "convention": outcome.convention},
            )
        return outcome

    def _authenticate(self, descriptor: RequestDescriptor) -> VerificationOutcome:
        if self._secret is None:
            return Rejected(reason=RejectionReason.MISSING_SECRET)

        candidate = resolve_shop_candidate(descriptor.query, descriptor.headers)
        shop = normalize_shop(candidate) if candidate is not None else ""
        if not shop:
            return Rejected(reason=RejectionReason.MISSING_SHOP)

        outcome = verify(descriptor, self._secret)
        if isinstance(outcome, Rejected):
            return outcome
        logger.debug("Proxy request authenticated", extra={"shop": shop, "path": descriptor.path})
        return Authenticated(shop=shop)


def describe_request(request: Request) -> RequestDescriptor:
    return RequestDescriptor.from_items(
        path=request.url.path,
        query_items=request.query_params.multi_items(),
        header_items=request.headers.items(),
    )


def get_auth_gate(request: Request) -> ProxyAuthGate:
    return request.app.state.auth_gate


def require_proxy_shop(request: Request) -> str:
    outcome = get_auth_gate(request).authenticate(describe_request(request))
    if isinstance(outcome, Rejected):
        raise ProxyAuthError.from_rejection(outcome)
    request.state.shop = outcome.shop
    return outcome.shop
