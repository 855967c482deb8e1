from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shelfgate.ils.driver.base import Holding, IlsDriver, Patron
from shelfgate.ils.exceptions import IlsException
from shelfgate.integration.settings import BaseSettings
from shelfgate.util.datetime_helpers import utc_now

DEFAULT_PICKUP_LOCATIONS = [
    {"locationID": "A", "locationDisplay": "Campus A"},
    {"locationID": "B", "locationDisplay": "Campus B"},
    {"locationID": "C", "locationDisplay": "Campus C"},
]


class DemoItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    location: str = "Main Library"
    callnumber: str = ""
    availability: bool = True
    status: str = "Available"
    barcode: str | None = None


class DemoPatron(BaseModel):
    model_config = ConfigDict(frozen=True)

    password: str
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    home_library: str | None = None


class DemoSettings(BaseSettings):
    # Record id -> items of that record.
    records: dict[str, list[DemoItem]] = Field(default_factory=dict)
    # Username -> patron.
    patrons: dict[str, DemoPatron] = Field(default_factory=dict)
    # Username -> current loans and fines.
    transactions: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    fines: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    transaction_history: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict
    )
    # Username -> reasons the patron may not place requests.
    request_blocks: dict[str, list[str]] = Field(default_factory=dict)
    account_blocks: dict[str, list[str]] = Field(default_factory=dict)
    purchase_history: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)

    pickup_locations: list[dict[str, str]] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_PICKUP_LOCATIONS)
    )
    default_pickup_location: str | None = None

    courses: dict[str, str] = Field(default_factory=dict)
    instructors: dict[str, str] = Field(default_factory=dict)
    departments: dict[str, str] = Field(default_factory=dict)
    # Each reserve has BIB_ID plus any of COURSE_ID, INSTRUCTOR_ID and DEPARTMENT_ID.
    reserves: list[dict[str, str]] = Field(default_factory=list)

    holds_enabled: bool = True
    transaction_history_enabled: bool = False
    loan_period_days: int = 14

    # Operations listed here raise IlsException, to simulate an unreachable backend.
    failing_operations: list[str] = Field(default_factory=list)


class DemoDriver(IlsDriver[DemoSettings]):
    """A library system that lives entirely in memory.

    Records, patrons and loans come from the configuration document. Holds
    placed and passwords changed through the driver are kept for the lifetime
    of the driver instance only.
    """

    SUPPORTS_ANY_SOURCE = True

    HOLD_METHODS = frozenset(
        {
            "place_hold",
            "check_request_is_valid",
            "cancel_holds",
            "get_cancel_hold_details",
        }
    )

    def __init__(self) -> None:
        super().__init__()
        self._holds: dict[str, list[dict[str, Any]]] = {}
        self._passwords: dict[str, str] = {}

    @classmethod
    def label(cls) -> str:
        return "Demo"

    @classmethod
    def description(cls) -> str:
        return "In-memory library system for testing and demonstrations."

    @classmethod
    def settings_class(cls) -> type[DemoSettings]:
        return DemoSettings

    def init(self) -> None:
        super().init()
        self._holds = {}
        self._passwords = {
            username: patron.password
            for username, patron in self.settings.patrons.items()
        }

    def supports_method(self, method: str, params: Sequence[Any]) -> bool:
        if method == "get_my_transaction_history":
            return self.settings.transaction_history_enabled
        if method in self.HOLD_METHODS:
            return self.settings.holds_enabled
        return not method.startswith("_") and callable(getattr(self, method, None))

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.settings.failing_operations:
            raise IlsException(f"Simulated failure in {operation}")

    def _username(self, patron: Mapping[str, Any] | None) -> str:
        if not patron:
            return ""
        return str(patron.get("cat_username", ""))

    def _holding(self, id: str, item: DemoItem) -> Holding:
        return {
            "id": id,
            "item_id": item.item_id,
            "availability": item.availability,
            "status": item.status,
            "location": item.location,
            "reserve": "N",
            "callnumber": item.callnumber,
            "barcode": item.barcode,
        }

    def get_status(self, id: str) -> list[Holding]:
        self._maybe_fail("get_status")
        return [self._holding(id, item) for item in self.settings.records.get(id, [])]

    def get_statuses(self, ids: Sequence[str]) -> list[list[Holding]]:
        self._maybe_fail("get_statuses")
        return super().get_statuses(ids)

    def get_holding(
        self,
        id: str,
        patron: Patron | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[Holding]:
        self._maybe_fail("get_holding")
        holdable = self.settings.holds_enabled and bool(self._username(patron))
        return [
            self._holding(id, item) | {"is_holdable": holdable}
            for item in self.settings.records.get(id, [])
        ]

    def get_purchase_history(self, id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self.settings.purchase_history.get(id, []))

    def patron_login(self, username: str, password: str) -> Patron | None:
        self._maybe_fail("patron_login")
        patron = self.settings.patrons.get(username)
        if patron is None or self._passwords.get(username) != password:
            self.log.info(f"Login failed for '{username}'")
            return None
        return {
            "id": username,
            "cat_username": username,
            "cat_password": password,
            "firstname": patron.firstname,
            "lastname": patron.lastname,
            "email": patron.email,
            "major": None,
            "college": None,
        }

    def get_my_profile(self, patron: Patron) -> dict[str, Any]:
        found = self.settings.patrons.get(self._username(patron))
        if found is None:
            return {}
        return {
            "firstname": found.firstname,
            "lastname": found.lastname,
            "email": found.email,
            "home_library": found.home_library,
        }

    def get_my_transactions(self, patron: Patron) -> list[dict[str, Any]]:
        self._maybe_fail("get_my_transactions")
        return copy.deepcopy(self.settings.transactions.get(self._username(patron), []))

    def get_my_transaction_history(
        self, patron: Patron, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        history = self.settings.transaction_history.get(self._username(patron), [])
        params = params or {}
        limit = int(params.get("limit", 50))
        page = max(int(params.get("page", 1)), 1)
        start = (page - 1) * limit
        return {
            "count": len(history),
            "transactions": copy.deepcopy(history[start : start + limit]),
        }

    def get_my_fines(self, patron: Patron) -> list[dict[str, Any]]:
        return copy.deepcopy(self.settings.fines.get(self._username(patron), []))

    def get_my_holds(self, patron: Patron) -> list[dict[str, Any]]:
        self._maybe_fail("get_my_holds")
        return copy.deepcopy(self._holds.get(self._username(patron), []))

    def get_request_blocks(self, patron: Patron) -> list[str] | bool:
        return list(self.settings.request_blocks.get(self._username(patron), [])) or False

    def get_account_blocks(self, patron: Patron) -> list[str] | bool:
        return list(self.settings.account_blocks.get(self._username(patron), [])) or False

    def check_request_is_valid(
        self, id: str, data: Mapping[str, Any], patron: Patron
    ) -> bool:
        return (
            id in self.settings.records
            and self._username(patron) in self.settings.patrons
            and not self.settings.request_blocks.get(self._username(patron))
        )

    def get_pick_up_locations(
        self,
        patron: Patron | None = None,
        hold_details: Mapping[str, Any] | None = None,
    ) -> list[dict[str, str]]:
        return copy.deepcopy(self.settings.pickup_locations)

    def get_default_pick_up_location(
        self,
        patron: Patron | None = None,
        hold_details: Mapping[str, Any] | None = None,
    ) -> str | bool:
        if self.settings.default_pickup_location:
            return self.settings.default_pickup_location
        if self.settings.pickup_locations:
            return self.settings.pickup_locations[0]["locationID"]
        return False

    def place_hold(self, details: Mapping[str, Any]) -> dict[str, Any]:
        self._maybe_fail("place_hold")
        username = self._username(details.get("patron"))
        id = details.get("id", "")
        if id not in self.settings.records:
            return {"success": False, "sysMessage": "hold_error_fail"}

        pickup = details.get("pickUpLocation") or self.get_default_pick_up_location()
        hold = {
            "id": id,
            "item_id": details.get("item_id") or "",
            "location": pickup,
            "create": utc_now().date().isoformat(),
            "expire": (utc_now() + timedelta(days=60)).date().isoformat(),
            "reqnum": uuid.uuid4().hex,
            "available": False,
        }
        self._holds.setdefault(username, []).append(hold)
        self.log.info(f"Placed hold on '{id}' for '{username}'")
        return {"success": True, "sysMessage": ""}

    def get_cancel_hold_details(
        self, hold: Mapping[str, Any], patron: Patron | None = None
    ) -> str:
        return str(hold.get("reqnum") or hold.get("item_id") or "")

    def cancel_holds(self, details: Mapping[str, Any]) -> dict[str, Any]:
        username = self._username(details.get("patron"))
        to_cancel = set(details.get("details", []))
        kept, items = [], {}
        for hold in self._holds.get(username, []):
            if hold["reqnum"] in to_cancel or hold["item_id"] in to_cancel:
                items[hold["item_id"] or hold["id"]] = {
                    "success": True,
                    "status": "hold_cancel_success",
                }
            else:
                kept.append(hold)
        self._holds[username] = kept
        return {"count": len(items), "items": items}

    def get_renew_details(self, checkout_details: Mapping[str, Any]) -> str:
        return str(checkout_details.get("item_id", ""))

    def renew_my_items(self, details: Mapping[str, Any]) -> dict[str, Any]:
        self._maybe_fail("renew_my_items")
        username = self._username(details.get("patron"))
        blocks = self.get_account_blocks({"cat_username": username})
        if blocks:
            return {"blocks": blocks, "details": {}}

        loaned = {
            transaction.get("item_id")
            for transaction in self.settings.transactions.get(username, [])
        }
        due = (utc_now() + timedelta(days=self.settings.loan_period_days)).date()
        results = {}
        for item_id in details.get("details", []):
            if item_id in loaned:
                results[item_id] = {
                    "success": True,
                    "new_date": due.isoformat(),
                    "item_id": item_id,
                }
            else:
                results[item_id] = {
                    "success": False,
                    "sysMessage": "renew_item_not_found",
                    "item_id": item_id,
                }
        return {"blocks": False, "details": results}

    def change_password(self, details: Mapping[str, Any]) -> dict[str, Any]:
        username = self._username(details.get("patron"))
        if self._passwords.get(username) != details.get("oldPassword"):
            return {"success": False, "status": "authentication_error_invalid"}
        self._passwords[username] = details["newPassword"]
        return {"success": True, "status": "change_password_ok"}

    def get_config(
        self, function: str, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        if function == "Holds" and self.settings.holds_enabled:
            return {
                "HMACKeys": "id:item_id",
                "extraHoldFields": "comments:requiredByDate:pickUpLocation",
                "defaultRequiredDate": "0:1:0",
            }
        if function == "getMyTransactionHistory":
            if not self.settings.transaction_history_enabled:
                return {}
            return {
                "max_results": 100,
                "sort": {"checkout desc": "sort_checkout_date_desc"},
                "default_sort": "checkout desc",
            }
        return {}

    def get_courses(self) -> dict[str, str]:
        return dict(self.settings.courses)

    def get_instructors(self) -> dict[str, str]:
        return dict(self.settings.instructors)

    def get_departments(self) -> dict[str, str]:
        return dict(self.settings.departments)

    def find_reserves(
        self, course: str, instructor: str, department: str
    ) -> list[dict[str, str]]:
        wanted = {
            "COURSE_ID": course,
            "INSTRUCTOR_ID": instructor,
            "DEPARTMENT_ID": department,
        }
        return [
            dict(reserve)
            for reserve in self.settings.reserves
            if all(not value or reserve.get(key) == value for key, value in wanted.items())
        ]

    def get_new_items(
        self, page: int, limit: int, days_old: int, fund_id: str | None = None
    ) -> dict[str, Any]:
        ids = list(self.settings.records)
        start = (max(page, 1) - 1) * limit
        return {
            "count": len(ids),
            "results": [{"id": id} for id in ids[start : start + limit]],
        }
