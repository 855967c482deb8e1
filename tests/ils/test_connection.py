from __future__ import annotations

from typing import Any

import pytest
from pytest import LogCaptureFixture

from shelfgate.ils.connection import HoldsMode, IlsConnection
from shelfgate.ils.exceptions import IlsException
from tests.fixtures.ils import MultiBackendFixture


class IlsConnectionFixture:
    def __init__(self, multibackend_fixture: MultiBackendFixture) -> None:
        self.multibackend_fixture = multibackend_fixture
        multibackend_fixture.drivers["libC"] = "Requests"

    def connection(self, **kwargs: Any) -> IlsConnection:
        return IlsConnection(self.multibackend_fixture.router(), **kwargs)


@pytest.fixture
def connection_fixture(
    multibackend_fixture: MultiBackendFixture,
) -> IlsConnectionFixture:
    return IlsConnectionFixture(multibackend_fixture)


PATRON_B = {"patron": {"cat_username": "libB.p1"}}


class TestCheckCapability:
    def test_supported(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_capability("patron_login", ["libB.p1", "pw"])
        assert connection.check_capability("place_ill_request", [{"id": "libC.1"}])

    def test_unsupported(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert not connection.check_capability("place_ill_request", [{"id": "libA.1"}])
        # Not an operation of the router at all.
        assert not connection.check_capability("no_such_method")

    def test_backend_failure(
        self, connection_fixture: IlsConnectionFixture, caplog: LogCaptureFixture
    ):
        connection_fixture.multibackend_fixture.drivers["libD"] = "FailingInit"
        connection = connection_fixture.connection()

        assert not connection.check_capability("place_hold", [{"id": "libD.1"}])
        assert "check_capability(place_hold) failed" in caplog.text

        with pytest.raises(IlsException, match="Could not connect"):
            connection.check_capability("place_hold", [{"id": "libD.1"}], throw=True)


class TestCheckFunction:
    def test_holds(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("Holds", {"id": "libB.1"}) == {
            "function": "place_hold",
            "HMACKeys": ["id", "item_id"],
            "extraHoldFields": "pickUpLocation",
            "helpText": "",
            "pickUpLocationCheckLimit": 0,
        }

    @pytest.mark.parametrize("mode", [HoldsMode.none, HoldsMode.disabled])
    def test_holds_turned_off(
        self, connection_fixture: IlsConnectionFixture, mode: HoldsMode
    ):
        connection = connection_fixture.connection(holds_mode=mode)
        assert connection.check_function("Holds", {"id": "libB.1"}) is False

    def test_holds_unsupported(self, connection_fixture: IlsConnectionFixture):
        connection_fixture.multibackend_fixture.drivers["libB"] = "Minimal"
        connection = connection_fixture.connection()
        assert connection.check_function("Holds", {"id": "libB.1"}) is False

    def test_cancel_holds(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("cancelHolds", PATRON_B) is False

        connection = connection_fixture.connection(cancel_holds_enabled=True)
        assert connection.check_function("cancelHolds", PATRON_B) == {
            "function": "cancel_holds"
        }

    def test_renewals(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("Renewals", PATRON_B) is False

        connection = connection_fixture.connection(renewals_enabled=True)
        assert connection.check_function("Renewals", PATRON_B) == {
            "function": "renew_my_items"
        }

    def test_cancel_requests(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection(
            cancel_storage_retrieval_requests_enabled=True,
            cancel_ill_requests_enabled=True,
        )
        params = {"patron": {"cat_username": "libC.p1"}}
        assert connection.check_function("cancelStorageRetrievalRequests", params) == {
            "function": "cancel_storage_retrieval_requests"
        }
        # The backend can place interlibrary loan requests but not cancel them.
        assert connection.check_function("cancelILLRequests", params) is False

        connection = connection_fixture.connection()
        assert connection.check_function("cancelStorageRetrievalRequests", params) is False

    def test_requests_without_configuration(
        self, connection_fixture: IlsConnectionFixture
    ):
        # The backend supports the requests but has no form configuration.
        connection = connection_fixture.connection()
        assert connection.check_function("StorageRetrievalRequests", {"id": "libC.1"}) is False
        assert connection.check_function("ILLRequests", {"id": "libC.1"}) is False

    def test_change_password(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("changePassword", PATRON_B) == {
            "function": "change_password"
        }

    def test_transactions(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("getMyTransactions", PATRON_B) == {
            "max_results": 50
        }
        assert connection.check_function("getMyTransactionHistory", PATRON_B) == {}

    def test_transactions_unsupported(self, connection_fixture: IlsConnectionFixture):
        connection_fixture.multibackend_fixture.drivers["libB"] = "Minimal"
        connection = connection_fixture.connection()
        assert connection.check_function("getMyTransactions", PATRON_B) is False

    def test_unknown_function(self, connection_fixture: IlsConnectionFixture):
        connection = connection_fixture.connection()
        assert connection.check_function("teleport", PATRON_B) is False

    def test_backend_failure(
        self, connection_fixture: IlsConnectionFixture, caplog: LogCaptureFixture
    ):
        connection_fixture.multibackend_fixture.drivers["libD"] = "FailingInit"
        connection = connection_fixture.connection()
        assert connection.check_function("Holds", {"id": "libD.1"}) is False
        assert "check_function(Holds) failed: Could not connect" in caplog.text
