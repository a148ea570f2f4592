"""Shared pytest fixtures for wallet payment tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from tupasaje.application.dtos import DriverDetailsDTO, UserLookupResponseDTO
from tupasaje.application.use_cases.balance import BalanceOracle
from tupasaje.application.use_cases.counterparty import CounterpartyResolver
from tupasaje.application.use_cases.qr_token import QRTokenLifecycleManager
from tupasaje.domain.entities import AuthenticatedUser, UserRole
from tests.fixtures import FakeClock, FakeWalletApi
from tests.fixtures.users import DRIVER_PHONE, FRIEND_PHONE, PASSENGER_PHONE


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def passenger() -> AuthenticatedUser:
    """The signed-in user paying for rides."""
    return AuthenticatedUser(
        id="1",
        display_name="Ana Maria Lopez",
        username="analopez",
        phone_number=PASSENGER_PHONE,
        role=UserRole.PASSENGER,
    )


@pytest.fixture
def passenger_dto() -> UserLookupResponseDTO:
    return UserLookupResponseDTO(
        id="1",
        first_name="Ana Maria",
        last_name="Lopez",
        username="analopez",
        phone_number=PASSENGER_PHONE,
        role="PASSENGER",
    )


@pytest.fixture
def driver_dto() -> UserLookupResponseDTO:
    return UserLookupResponseDTO(
        id="2",
        first_name="Carlos",
        last_name="Rodriguez",
        username="carlosdriver",
        phone_number=DRIVER_PHONE,
        role="DRIVER",
        driver=DriverDetailsDTO(
            vehicle_type="Bus", vehicle_plate="ABC123", average_rating=4.8
        ),
    )


@pytest.fixture
def friend_dto() -> UserLookupResponseDTO:
    return UserLookupResponseDTO(
        id="3",
        full_name="Laura Gomez",
        username="laurag",
        phone_number=FRIEND_PHONE,
        role="PASSENGER",
    )


@pytest.fixture
def wallet_api(
    clock: FakeClock,
    passenger_dto: UserLookupResponseDTO,
    driver_dto: UserLookupResponseDTO,
    friend_dto: UserLookupResponseDTO,
) -> FakeWalletApi:
    """Fake backend with the passenger, a driver and a friend registered."""
    api = FakeWalletApi(clock)
    for user in (passenger_dto, driver_dto, friend_dto):
        api.add_user(user)
    return api


@pytest.fixture
def balance_oracle(wallet_api: FakeWalletApi) -> BalanceOracle:
    return BalanceOracle(wallet_api)


@pytest.fixture
def resolver(
    wallet_api: FakeWalletApi, passenger: AuthenticatedUser
) -> CounterpartyResolver:
    return CounterpartyResolver(wallet_api, passenger)


@pytest_asyncio.fixture
async def qr_manager(
    wallet_api: FakeWalletApi, clock: FakeClock
) -> AsyncGenerator[QRTokenLifecycleManager, None]:
    """Lifecycle manager whose countdowns are stopped after each test."""
    manager = QRTokenLifecycleManager(wallet_api, clock=clock)
    yield manager
    manager.close()
