"""Integration tests for AsyncWalletApiClient against a FastAPI backend stand-in."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from tupasaje.application.dtos import (
    GeneratePaymentQRDTO,
    ScanQRDTO,
    TransferDTO,
    ValidateQRDTO,
)
from tupasaje.application.use_cases.balance import BalanceOracle
from tupasaje.application.use_cases.counterparty import (
    CounterpartyQuery,
    CounterpartyResolver,
)
from tupasaje.application.use_cases.payment_confirmation import (
    PaymentConfirmationController,
    PaymentState,
)
from tupasaje.application.use_cases.submission import OutcomeKind
from tupasaje.domain.entities import AuthenticatedUser, QRStatus
from tupasaje.domain.errors import BackendError, NetworkError
from tupasaje.envs.client_env import Settings
from tupasaje.infrastructure.wallet_api_client import AsyncWalletApiClient
from tests.fixtures.fake_wallet_backend import create_fake_wallet_backend
from tests.fixtures.users import DRIVER_PHONE

BASE_URL = "http://testserver/api"


@pytest.fixture
def backend() -> FastAPI:
    return create_fake_wallet_backend()


@pytest_asyncio.fixture
async def client(backend: FastAPI) -> AsyncGenerator[AsyncWalletApiClient, None]:
    async with AsyncWalletApiClient(
        BASE_URL, access_token="jwt-abc", transport=httpx.ASGITransport(app=backend)
    ) as api:
        yield api


def _last_request(backend: FastAPI) -> tuple:
    return backend.state.requests[-1]


class TestQRTokens:
    """Payment QR endpoints."""

    @pytest.mark.asyncio
    async def test_generate_sends_camel_case_and_bearer(
        self, client: AsyncWalletApiClient, backend: FastAPI
    ) -> None:
        dto = await client.generate_qr(
            GeneratePaymentQRDTO(
                amount=Decimal("5000"), wallet_id="wallet-2", expires_in_minutes=15
            )
        )

        method, path, headers, body = _last_request(backend)
        assert (method, path) == ("POST", "/api/users/qr/payment")
        assert headers["authorization"] == "Bearer jwt-abc"
        assert body == {"amount": 5000, "walletId": "wallet-2", "expiresInMinutes": 15}
        assert dto.token == "tok-1"
        assert dto.amount == Decimal("5000")
        assert dto.status is QRStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_list_active_maps_legacy_used_status(
        self, client: AsyncWalletApiClient, backend: FastAPI
    ) -> None:
        tokens = await client.list_active_qr("wallet-2")

        assert [t.status for t in tokens] == [QRStatus.ACTIVE, QRStatus.REDEEMED]
        assert tokens[0].amount == Decimal("5000.00")
        assert tokens[1].wallet_id == "wallet-2"

    @pytest.mark.asyncio
    async def test_cancel_with_empty_body_succeeds(
        self, client: AsyncWalletApiClient, backend: FastAPI
    ) -> None:
        result = await client.cancel_qr("tok-1")

        assert result.success is True
        method, path, _, _ = _last_request(backend)
        assert (method, path) == ("DELETE", "/api/users/qr/tok-1")

    @pytest.mark.asyncio
    async def test_cancel_rejection_carries_first_backend_message(
        self, client: AsyncWalletApiClient
    ) -> None:
        with pytest.raises(BackendError) as exc_info:
            await client.cancel_qr("used")

        assert exc_info.value.status_code == 400
        assert exc_info.value.backend_message == "QR code already used"
        assert exc_info.value.is_client_error is True

    @pytest.mark.asyncio
    async def test_validate_returns_transaction(
        self, client: AsyncWalletApiClient
    ) -> None:
        result = await client.validate_qr(ValidateQRDTO(token="tok-1"))

        assert result.success is True
        assert result.transaction is not None
        assert result.transaction.id == "10"
        assert result.transaction.from_ == "analopez"

    @pytest.mark.asyncio
    async def test_validate_expired_token(self, client: AsyncWalletApiClient) -> None:
        with pytest.raises(BackendError) as exc_info:
            await client.validate_qr(ValidateQRDTO(token="expired"))

        assert exc_info.value.message == "QR code expired"


class TestBalanceAndHistory:
    """Wallet read endpoints."""

    @pytest.mark.asyncio
    async def test_balance(self, client: AsyncWalletApiClient) -> None:
        balance = await client.get_balance()

        assert balance.balance == Decimal("50000")
        assert balance.currency == "COP"
        assert balance.is_frozen is False

    @pytest.mark.asyncio
    async def test_transactions(self, client: AsyncWalletApiClient) -> None:
        (tx,) = await client.get_transactions()

        assert tx.id == "9"
        assert tx.to_entity().net_amount == Decimal("4750")


class TestLookup:
    """Counterparty lookups; not-found is ``None``, never an error."""

    @pytest.mark.asyncio
    async def test_lookup_by_id(self, client: AsyncWalletApiClient) -> None:
        found = await client.get_user_by_id("2")

        assert found is not None
        identity = found.to_entity()
        assert identity.id == "2"
        assert identity.display_name == "Carlos Rodriguez"
        assert identity.driver is not None
        assert identity.driver.plate == "ABC123"

    @pytest.mark.asyncio
    async def test_unknown_username_is_none(self, client: AsyncWalletApiClient) -> None:
        assert await client.get_user_by_username("nobody") is None

    @pytest.mark.asyncio
    async def test_unknown_phone_with_null_body_is_none(
        self, client: AsyncWalletApiClient
    ) -> None:
        assert await client.get_user_by_phone("3150000000") is None

    @pytest.mark.asyncio
    async def test_scan_sends_qr_data(
        self, client: AsyncWalletApiClient, backend: FastAPI
    ) -> None:
        found = await client.scan_qr_payload(ScanQRDTO(qr_data='{"userId": 2}'))

        assert found is not None
        assert found.username == "carlosdriver"
        _, path, _, body = _last_request(backend)
        assert path == "/api/users/qr/scan"
        assert body == {"qrData": '{"userId": 2}'}


class TestTransfer:
    """Transfer submission and error translation."""

    @pytest.mark.asyncio
    async def test_transfer_wire_format(
        self, client: AsyncWalletApiClient, backend: FastAPI
    ) -> None:
        result = await client.transfer(
            TransferDTO(to_user_id="2", amount=Decimal("5000"), description="Ruta 12")
        )

        _, path, _, body = _last_request(backend)
        assert path == "/api/payment/transfer"
        assert body == {"toUserId": 2, "amount": 5000, "description": "Ruta 12"}
        assert result.transaction_id == "77"
        assert result.fee == Decimal("250")
        assert result.net_amount == Decimal("4750")

    @pytest.mark.asyncio
    async def test_backend_message_is_kept_verbatim(
        self, client: AsyncWalletApiClient
    ) -> None:
        with pytest.raises(BackendError) as exc_info:
            await client.transfer(TransferDTO(to_user_id="2", amount=Decimal("90000")))

        assert exc_info.value.status_code == 400
        assert exc_info.value.backend_message == "Insufficient balance"
        assert exc_info.value.message == "Insufficient balance"

    @pytest.mark.asyncio
    async def test_non_json_error_uses_fallback_message(
        self, client: AsyncWalletApiClient
    ) -> None:
        with pytest.raises(BackendError) as exc_info:
            await client.transfer(TransferDTO(to_user_id="500", amount=Decimal("100")))

        assert exc_info.value.status_code == 500
        assert exc_info.value.backend_message is None
        assert exc_info.value.message == "Could not complete the transfer"


class TestTransportFailures:
    """Failures below the HTTP contract."""

    @pytest.mark.asyncio
    async def test_unreachable_backend_is_network_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with AsyncWalletApiClient(
            BASE_URL, transport=httpx.MockTransport(refuse)
        ) as api:
            with pytest.raises(NetworkError) as exc_info:
                await api.get_balance()

        assert exc_info.value.status_code is None
        assert exc_info.value.message == "Could not load the wallet balance"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_backend_error(self) -> None:
        def malformed(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        async with AsyncWalletApiClient(
            BASE_URL, transport=httpx.MockTransport(malformed)
        ) as api:
            with pytest.raises(BackendError) as exc_info:
                await api.get_balance()

        assert not isinstance(exc_info.value, NetworkError)


class TestPaymentOverHttp:
    """Resolve a driver by phone and pay them through the real client."""

    @pytest.mark.asyncio
    async def test_pay_driver(
        self, client: AsyncWalletApiClient, passenger: AuthenticatedUser
    ) -> None:
        resolver = CounterpartyResolver(client, passenger)
        resolution = await resolver.resolve(CounterpartyQuery.phone(DRIVER_PHONE))
        driver = resolution.unwrap()

        controller = PaymentConfirmationController(
            client,
            BalanceOracle(client),
            driver,
            "5000",
            payer=passenger,
            transport_type=driver.driver.vehicle if driver.driver else None,
        )
        outcome = await controller.confirm()

        assert outcome.kind is OutcomeKind.COMPLETED
        assert controller.state is PaymentState.SUCCEEDED
        assert outcome.receipt is not None
        assert outcome.receipt.reference == "TRX-77"
        assert outcome.receipt.net_amount == Decimal("4750")
        assert outcome.receipt.breakdown.consistent is True


@pytest.mark.asyncio
async def test_client_from_settings(backend: FastAPI) -> None:
    settings = Settings(api_base_url=BASE_URL, access_token="jwt-xyz")

    async with AsyncWalletApiClient.from_settings(
        settings, transport=httpx.ASGITransport(app=backend)
    ) as api:
        balance = await api.get_balance()

    assert balance.balance == Decimal("50000")
    _, path, headers, _ = _last_request(backend)
    assert path == "/api/wallet/balance"
    assert headers["authorization"] == "Bearer jwt-xyz"
