"""Counterparty resolution across QR, username, phone and id channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...domain.entities import AuthenticatedUser, CounterpartyIdentity
from ...domain.errors import (
    CounterpartyNotFoundError,
    InvalidQRPayloadError,
    SelfTransferError,
)
from ...domain.shared import WalletApiProtocol
from ..dtos import ScanQRDTO, UserLookupResponseDTO
from ..formatters import mask_name, normalize_phone
from .qr_payload import QRPayload, parse_qr_payload
from .validators import is_self, normalize_username

logger = logging.getLogger(__name__)

QueryKind = Literal["qr", "username", "phone", "id"]


class CounterpartyQuery(BaseModel):
    """Tagged input for the resolver: one channel, one value."""

    model_config = ConfigDict(frozen=True)

    kind: QueryKind
    value: str = Field(..., min_length=1)

    @classmethod
    def qr(cls, payload: str) -> "CounterpartyQuery":
        return cls(kind="qr", value=payload)

    @classmethod
    def username(cls, username: str) -> "CounterpartyQuery":
        return cls(kind="username", value=username)

    @classmethod
    def phone(cls, phone: str) -> "CounterpartyQuery":
        return cls(kind="phone", value=phone)

    @classmethod
    def id(cls, user_id: str) -> "CounterpartyQuery":
        return cls(kind="id", value=str(user_id))


class ResolutionStatus(str, Enum):
    RESOLVED = "RESOLVED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    SELF_TRANSFER = "SELF_TRANSFER"


@dataclass(frozen=True)
class Resolution:
    """Outcome of a resolution attempt.

    Not-found is an ordinary outcome carrying a retry affordance, not an
    exception. ``unwrap`` converts any non-resolved outcome into the
    matching domain error for callers that prefer raising.
    """

    query: CounterpartyQuery
    status: ResolutionStatus
    identity: Optional[CounterpartyIdentity] = None
    message: Optional[str] = None
    payload: Optional[QRPayload] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED

    @property
    def retryable(self) -> bool:
        return self.status is ResolutionStatus.NOT_FOUND

    def unwrap(self) -> CounterpartyIdentity:
        if self.status is ResolutionStatus.RESOLVED and self.identity is not None:
            return self.identity
        message = self.message or "User not found"
        if self.status is ResolutionStatus.INVALID_PAYLOAD:
            raise InvalidQRPayloadError(message)
        if self.status is ResolutionStatus.SELF_TRANSFER:
            raise SelfTransferError(message)
        raise CounterpartyNotFoundError(message)


NOT_FOUND_MESSAGE = "User not found"
SELF_TRANSFER_MESSAGE = "You cannot send money to your own account"


class CounterpartyResolver:
    """Normalizes every identification channel into a ``CounterpartyIdentity``.

    The self-transfer guard runs before the lookup whenever the query already
    identifies the caller, and again on the resolved identity.
    """

    def __init__(
        self, wallet_api: WalletApiProtocol, current_user: AuthenticatedUser
    ) -> None:
        self._wallet_api = wallet_api
        self._current_user = current_user

    @property
    def current_user(self) -> AuthenticatedUser:
        return self._current_user

    async def resolve(self, query: CounterpartyQuery) -> Resolution:
        """Resolve ``query`` into a counterparty outcome.

        Raises:
            BackendError: If the lookup itself fails (not for "not found").
        """
        if query.kind == "qr":
            return await self._resolve_qr(query)

        value = self._normalize(query)
        if not value:
            return self._finish(query, None)
        if self._is_self_query(query.kind, value):
            return self._self_transfer(query)

        found = await self._lookup(query.kind)(value)
        return self._finish(query, found)

    def _lookup(
        self, kind: str
    ) -> Callable[[str], Awaitable[Optional[UserLookupResponseDTO]]]:
        lookups = {
            "username": self._wallet_api.get_user_by_username,
            "phone": self._wallet_api.get_user_by_phone,
            "id": self._wallet_api.get_user_by_id,
        }
        try:
            return lookups[kind]
        except KeyError:
            raise ValueError(f"Unsupported counterparty query kind: {kind}") from None

    async def _resolve_qr(self, query: CounterpartyQuery) -> Resolution:
        try:
            payload = parse_qr_payload(query.value)
        except InvalidQRPayloadError as e:
            logger.info("Rejected malformed QR payload")
            return Resolution(
                query=query,
                status=ResolutionStatus.INVALID_PAYLOAD,
                message=e.message,
            )

        if is_self(
            self._current_user,
            user_id=payload.user_id,
            phone_number=payload.phone_number,
            username=payload.username,
        ):
            return self._self_transfer(query, payload)

        found = await self._wallet_api.scan_qr_payload(ScanQRDTO(qr_data=query.value))
        return self._finish(query, found, payload)

    def _finish(
        self,
        query: CounterpartyQuery,
        found: Optional[UserLookupResponseDTO],
        payload: Optional[QRPayload] = None,
    ) -> Resolution:
        if found is None:
            return Resolution(
                query=query,
                status=ResolutionStatus.NOT_FOUND,
                message=NOT_FOUND_MESSAGE,
                payload=payload,
            )
        identity = found.to_entity()
        if is_self(
            self._current_user,
            user_id=identity.id,
            phone_number=identity.phone_number,
        ):
            return self._self_transfer(query, payload)
        logger.debug(
            "Resolved %s counterparty %s", query.kind, mask_name(identity.display_name)
        )
        return Resolution(
            query=query,
            status=ResolutionStatus.RESOLVED,
            identity=identity,
            payload=payload,
        )

    def _self_transfer(
        self, query: CounterpartyQuery, payload: Optional[QRPayload] = None
    ) -> Resolution:
        logger.info("Refused to resolve the caller as counterparty (%s)", query.kind)
        return Resolution(
            query=query,
            status=ResolutionStatus.SELF_TRANSFER,
            message=SELF_TRANSFER_MESSAGE,
            payload=payload,
        )

    def _normalize(self, query: CounterpartyQuery) -> str:
        if query.kind == "phone":
            return normalize_phone(query.value)
        if query.kind == "username":
            return normalize_username(query.value)
        return query.value.strip()

    def _is_self_query(self, kind: str, value: str) -> bool:
        if kind == "phone":
            return is_self(self._current_user, phone_number=value)
        if kind == "id":
            return is_self(self._current_user, user_id=value)
        if kind == "username":
            return is_self(self._current_user, username=value)
        return False
