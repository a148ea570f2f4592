from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional, Type
from types import TracebackType
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..application.dtos import (
    BackendErrorBodyDTO,
    CancelQRResponseDTO,
    GeneratePaymentQRDTO,
    PaymentQRResponseDTO,
    ScanQRDTO,
    TransactionDTO,
    TransferDTO,
    TransferResponseDTO,
    UserLookupResponseDTO,
    ValidateQRDTO,
    ValidateQRResponseDTO,
    WalletBalanceDTO,
)
from ..domain.errors import BackendError, NetworkError
from .http.http_client import AsyncHttpClient
from .timing import log_timing

if TYPE_CHECKING:
    from ..envs.client_env import Settings

logger = logging.getLogger(__name__)


def _extract_backend_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    try:
        return BackendErrorBodyDTO.model_validate(body).first_message()
    except ValidationError:
        return None


@asynccontextmanager
async def _translate_errors(fallback_message: str) -> AsyncIterator[None]:
    """Map transport and contract failures onto ``BackendError``."""
    try:
        yield
    except httpx.HTTPStatusError as e:
        raise BackendError(
            fallback_message,
            status_code=e.response.status_code,
            backend_message=_extract_backend_message(e.response),
        ) from e
    except httpx.RequestError as e:
        logger.warning("Wallet backend unreachable: %s", e)
        raise NetworkError(fallback_message) from e
    except ValidationError as e:
        logger.error("Unexpected response from wallet backend: %s", e)
        raise BackendError(fallback_message) from e


class AsyncWalletApiClient:
    """Asynchronous client for the wallet backend HTTP API.

    Methods are intentionally bound to the application DTOs and satisfy
    ``WalletApiProtocol``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        *,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(
            base_url, timeout=timeout, access_token=access_token, transport=transport
        )

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AsyncWalletApiClient":
        return cls(
            settings.api_base_url,
            timeout=settings.api_timeout_seconds,
            access_token=settings.access_token,
            transport=transport,
        )

    # QR payment tokens

    @log_timing("generate_qr")
    async def generate_qr(self, dto: GeneratePaymentQRDTO) -> PaymentQRResponseDTO:
        async with _translate_errors("Could not generate the QR code"):
            resp = await self._http.post("/users/qr/payment", json=dto.to_wire())
            return PaymentQRResponseDTO.model_validate(resp.json())

    @log_timing("validate_qr")
    async def validate_qr(self, dto: ValidateQRDTO) -> ValidateQRResponseDTO:
        async with _translate_errors("Could not process the payment"):
            resp = await self._http.post("/users/qr/validate", json=dto.to_wire())
            return ValidateQRResponseDTO.model_validate(resp.json())

    @log_timing("cancel_qr")
    async def cancel_qr(self, token: str) -> CancelQRResponseDTO:
        async with _translate_errors("Could not cancel the QR code"):
            resp = await self._http.delete(f"/users/qr/{quote(token, safe='')}")
            if not resp.content:
                return CancelQRResponseDTO(success=True)
            return CancelQRResponseDTO.model_validate(resp.json())

    @log_timing("list_active_qr")
    async def list_active_qr(self, wallet_id: str) -> list[PaymentQRResponseDTO]:
        async with _translate_errors("Could not load active QR codes"):
            resp = await self._http.get(
                "/users/qr/active", params={"walletId": wallet_id}
            )
            return [PaymentQRResponseDTO.model_validate(item) for item in resp.json()]

    # Balance and history

    @log_timing("get_balance")
    async def get_balance(self) -> WalletBalanceDTO:
        async with _translate_errors("Could not load the wallet balance"):
            resp = await self._http.get("/wallet/balance")
            return WalletBalanceDTO.model_validate(resp.json())

    @log_timing("get_transactions")
    async def get_transactions(self) -> list[TransactionDTO]:
        async with _translate_errors("Could not load transactions"):
            resp = await self._http.get("/wallet/transactions")
            return [TransactionDTO.model_validate(item) for item in resp.json()]

    # Counterparty lookup

    async def _lookup(
        self, path: str, *, json: Optional[dict] = None
    ) -> Optional[UserLookupResponseDTO]:
        async with _translate_errors("Could not look up the user"):
            try:
                if json is None:
                    resp = await self._http.get(path)
                else:
                    resp = await self._http.post(path, json=json)
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    return None
                raise
            if not resp.content:
                return None
            body = resp.json()
            if not body:
                return None
            return UserLookupResponseDTO.model_validate(body)

    @log_timing("get_user_by_username")
    async def get_user_by_username(
        self, username: str
    ) -> Optional[UserLookupResponseDTO]:
        return await self._lookup(f"/users/search/username/{quote(username, safe='')}")

    @log_timing("get_user_by_phone")
    async def get_user_by_phone(self, phone: str) -> Optional[UserLookupResponseDTO]:
        return await self._lookup(f"/users/search/phone/{quote(phone, safe='')}")

    @log_timing("get_user_by_id")
    async def get_user_by_id(self, user_id: str) -> Optional[UserLookupResponseDTO]:
        return await self._lookup(f"/users/{quote(user_id, safe='')}")

    @log_timing("scan_qr_payload")
    async def scan_qr_payload(self, dto: ScanQRDTO) -> Optional[UserLookupResponseDTO]:
        return await self._lookup("/users/qr/scan", json=dto.to_wire())

    # Transfers

    @log_timing("transfer")
    async def transfer(self, dto: TransferDTO) -> TransferResponseDTO:
        async with _translate_errors("Could not complete the transfer"):
            resp = await self._http.post("/payment/transfer", json=dto.to_wire())
            return TransferResponseDTO.model_validate(resp.json())

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncWalletApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
