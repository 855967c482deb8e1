from __future__ import annotations

from typing import Any

import pytest
from freezegun import freeze_time

from shelfgate.ils.config_loader import DictConfigLoader
from shelfgate.ils.driver.demo import DemoDriver, DemoSettings
from shelfgate.ils.exceptions import IlsException
from shelfgate.ils.multibackend import MultiBackend
from shelfgate.ils.settings import MultiBackendSettings
from shelfgate.integration.settings import SettingsValidationError
from shelfgate.service.integration_registry.ils_drivers import IlsDriverRegistry


def demo_config(**overrides: Any) -> dict[str, Any]:
    config: dict[str, Any] = {
        "records": {
            "1": [{"item_id": "1-a", "location": "Stacks", "callnumber": "QA 1"}],
            "2": [
                {
                    "item_id": "2-a",
                    "availability": False,
                    "status": "Checked Out",
                    "barcode": "39999000001",
                }
            ],
            "3": [],
        },
        "patrons": {
            "jdoe": {
                "password": "secret",
                "firstname": "Jane",
                "lastname": "Doe",
                "email": "jdoe@example.com",
                "home_library": "A",
            },
            "blocked": {"password": "secret"},
        },
        "transactions": {
            "jdoe": [{"id": "2", "item_id": "2-a", "duedate": "2024-02-01"}]
        },
        "fines": {"jdoe": [{"id": "1", "amount": 250, "fine": "Overdue"}]},
        "transaction_history": {"jdoe": [{"id": str(i)} for i in range(5)]},
        "request_blocks": {"blocked": ["Unpaid fines"]},
        "account_blocks": {"blocked": ["Expired card"]},
        "purchase_history": {"1": [{"issue": "Vol. 1 (2023)"}]},
        "courses": {"c1": "Cataloging 101"},
        "instructors": {"i1": "Smith"},
        "departments": {"d1": "Library Science"},
        "reserves": [
            {"BIB_ID": "1", "COURSE_ID": "c1", "INSTRUCTOR_ID": "i1"},
            {"BIB_ID": "2", "COURSE_ID": "c2", "DEPARTMENT_ID": "d1"},
        ],
    }
    config.update(overrides)
    return config


def demo_driver(**overrides: Any) -> DemoDriver:
    driver = DemoDriver()
    driver.set_config(demo_config(**overrides))
    driver.init()
    return driver


JDOE = {"id": "jdoe", "cat_username": "jdoe"}


class TestDemoSettings:
    def test_defaults(self) -> None:
        settings = DemoSettings()
        assert settings.records == {}
        assert [l["locationID"] for l in settings.pickup_locations] == ["A", "B", "C"]
        assert settings.holds_enabled is True
        assert settings.transaction_history_enabled is False

    def test_invalid(self) -> None:
        with pytest.raises(SettingsValidationError) as excinfo:
            DemoSettings(patrons={"jdoe": {"firstname": "Jane"}})
        assert "'patrons.jdoe.password'" in str(excinfo.value.debug_message)


class TestDemoDriver:
    def test_get_status(self) -> None:
        driver = demo_driver()
        assert driver.get_status("1") == [
            {
                "id": "1",
                "item_id": "1-a",
                "availability": True,
                "status": "Available",
                "location": "Stacks",
                "reserve": "N",
                "callnumber": "QA 1",
                "barcode": None,
            }
        ]
        [checked_out] = driver.get_status("2")
        assert checked_out["availability"] is False
        assert checked_out["barcode"] == "39999000001"
        assert driver.get_status("missing") == []

    def test_get_statuses(self) -> None:
        driver = demo_driver()
        statuses = driver.get_statuses(["1", "2", "3", "missing"])
        assert [len(s) for s in statuses] == [1, 1, 0, 0]

    def test_get_holding(self) -> None:
        driver = demo_driver()
        [holding] = driver.get_holding("1", JDOE)
        assert holding["is_holdable"] is True
        [holding] = driver.get_holding("1")
        assert holding["is_holdable"] is False

        driver = demo_driver(holds_enabled=False)
        [holding] = driver.get_holding("1", JDOE)
        assert holding["is_holdable"] is False

    def test_get_purchase_history(self) -> None:
        driver = demo_driver()
        assert driver.get_purchase_history("1") == [{"issue": "Vol. 1 (2023)"}]
        assert driver.get_purchase_history("2") == []

    def test_patron_login(self) -> None:
        driver = demo_driver()
        assert driver.patron_login("jdoe", "secret") == {
            "id": "jdoe",
            "cat_username": "jdoe",
            "cat_password": "secret",
            "firstname": "Jane",
            "lastname": "Doe",
            "email": "jdoe@example.com",
            "major": None,
            "college": None,
        }
        assert driver.patron_login("jdoe", "wrong") is None
        assert driver.patron_login("nobody", "secret") is None

    def test_get_my_profile(self) -> None:
        driver = demo_driver()
        assert driver.get_my_profile(JDOE) == {
            "firstname": "Jane",
            "lastname": "Doe",
            "email": "jdoe@example.com",
            "home_library": "A",
        }
        assert driver.get_my_profile({"cat_username": "nobody"}) == {}

    def test_account_lists(self) -> None:
        driver = demo_driver()
        assert driver.get_my_transactions(JDOE) == [
            {"id": "2", "item_id": "2-a", "duedate": "2024-02-01"}
        ]
        assert driver.get_my_fines(JDOE) == [
            {"id": "1", "amount": 250, "fine": "Overdue"}
        ]
        assert driver.get_my_transactions({"cat_username": "nobody"}) == []

        # Results are copies of the configuration.
        driver.get_my_fines(JDOE)[0]["amount"] = 0
        assert driver.get_my_fines(JDOE)[0]["amount"] == 250

    def test_transaction_history(self) -> None:
        driver = demo_driver()
        assert not driver.supports_method("get_my_transaction_history", [JDOE])
        assert driver.get_config("getMyTransactionHistory") == {}

        driver = demo_driver(transaction_history_enabled=True)
        assert driver.supports_method("get_my_transaction_history", [JDOE])
        assert driver.get_config("getMyTransactionHistory")["max_results"] == 100

        history = driver.get_my_transaction_history(JDOE, {"limit": 2, "page": 2})
        assert history == {"count": 5, "transactions": [{"id": "2"}, {"id": "3"}]}
        history = driver.get_my_transaction_history(JDOE)
        assert len(history["transactions"]) == 5

    def test_blocks(self) -> None:
        driver = demo_driver()
        assert driver.get_request_blocks(JDOE) is False
        assert driver.get_account_blocks(JDOE) is False
        assert driver.get_request_blocks({"cat_username": "blocked"}) == ["Unpaid fines"]
        assert driver.get_account_blocks({"cat_username": "blocked"}) == ["Expired card"]

    def test_check_request_is_valid(self) -> None:
        driver = demo_driver()
        assert driver.check_request_is_valid("1", {}, JDOE) is True
        assert driver.check_request_is_valid("missing", {}, JDOE) is False
        assert driver.check_request_is_valid("1", {}, {"cat_username": "nobody"}) is False
        assert driver.check_request_is_valid("1", {}, {"cat_username": "blocked"}) is False

    def test_pick_up_locations(self) -> None:
        driver = demo_driver()
        assert len(driver.get_pick_up_locations(JDOE)) == 3
        assert driver.get_default_pick_up_location(JDOE) == "A"

        driver = demo_driver(default_pickup_location="C")
        assert driver.get_default_pick_up_location(JDOE) == "C"

        driver = demo_driver(pickup_locations=[])
        assert driver.get_pick_up_locations(JDOE) == []
        assert driver.get_default_pick_up_location(JDOE) is False

    @freeze_time("2024-01-10 12:00:00")
    def test_holds(self) -> None:
        driver = demo_driver()
        assert driver.get_my_holds(JDOE) == []

        result = driver.place_hold({"id": "1", "item_id": "1-a", "patron": JDOE})
        assert result == {"success": True, "sysMessage": ""}

        [hold] = driver.get_my_holds(JDOE)
        assert hold["id"] == "1"
        assert hold["item_id"] == "1-a"
        assert hold["location"] == "A"
        assert hold["create"] == "2024-01-10"
        assert hold["expire"] == "2024-03-10"
        assert hold["available"] is False

        token = driver.get_cancel_hold_details(hold)
        assert token == hold["reqnum"]

        result = driver.cancel_holds({"details": [token], "patron": JDOE})
        assert result == {
            "count": 1,
            "items": {"1-a": {"success": True, "status": "hold_cancel_success"}},
        }
        assert driver.get_my_holds(JDOE) == []

    def test_place_hold_pick_up_location(self) -> None:
        driver = demo_driver()
        driver.place_hold({"id": "2", "patron": JDOE, "pickUpLocation": "B"})
        [hold] = driver.get_my_holds(JDOE)
        assert hold["location"] == "B"
        assert hold["item_id"] == ""
        assert driver.get_cancel_hold_details(hold) == hold["reqnum"]

    def test_place_hold_unknown_record(self) -> None:
        driver = demo_driver()
        assert driver.place_hold({"id": "missing", "patron": JDOE}) == {
            "success": False,
            "sysMessage": "hold_error_fail",
        }
        assert driver.get_my_holds(JDOE) == []

    def test_cancel_holds_leaves_others(self) -> None:
        driver = demo_driver()
        driver.place_hold({"id": "1", "item_id": "1-a", "patron": JDOE})
        driver.place_hold({"id": "2", "item_id": "2-a", "patron": JDOE})
        result = driver.cancel_holds({"details": ["2-a"], "patron": JDOE})
        assert result["count"] == 1
        assert [h["id"] for h in driver.get_my_holds(JDOE)] == ["1"]

    def test_holds_disabled(self) -> None:
        driver = demo_driver(holds_enabled=False)
        for method in DemoDriver.HOLD_METHODS:
            assert not driver.supports_method(method, [])
        assert driver.get_config("Holds") == {}
        assert driver.supports_method("get_my_holds", [JDOE])

    def test_supports_method(self) -> None:
        driver = demo_driver()
        assert driver.supports_method("patron_login", ["jdoe", "secret"])
        assert driver.supports_method("place_hold", [{}])
        assert not driver.supports_method("place_ill_request", [{}])
        assert not driver.supports_method("_maybe_fail", ["get_status"])

    @freeze_time("2024-01-10")
    def test_renew_my_items(self) -> None:
        driver = demo_driver()
        assert driver.get_renew_details({"id": "2", "item_id": "2-a"}) == "2-a"

        result = driver.renew_my_items({"details": ["2-a", "9-z"], "patron": JDOE})
        assert result == {
            "blocks": False,
            "details": {
                "2-a": {"success": True, "new_date": "2024-01-24", "item_id": "2-a"},
                "9-z": {
                    "success": False,
                    "sysMessage": "renew_item_not_found",
                    "item_id": "9-z",
                },
            },
        }

    def test_renew_my_items_blocked(self) -> None:
        driver = demo_driver()
        result = driver.renew_my_items(
            {"details": ["2-a"], "patron": {"cat_username": "blocked"}}
        )
        assert result == {"blocks": ["Expired card"], "details": {}}

    def test_change_password(self) -> None:
        driver = demo_driver()
        details = {"patron": JDOE, "oldPassword": "wrong", "newPassword": "new"}
        assert driver.change_password(details) == {
            "success": False,
            "status": "authentication_error_invalid",
        }

        details["oldPassword"] = "secret"
        assert driver.change_password(details) == {
            "success": True,
            "status": "change_password_ok",
        }
        assert driver.patron_login("jdoe", "secret") is None
        assert driver.patron_login("jdoe", "new") is not None

        # A new driver starts again from the configuration.
        assert demo_driver().patron_login("jdoe", "secret") is not None

    def test_get_config(self) -> None:
        driver = demo_driver()
        assert driver.get_config("Holds") == {
            "HMACKeys": "id:item_id",
            "extraHoldFields": "comments:requiredByDate:pickUpLocation",
            "defaultRequiredDate": "0:1:0",
        }
        assert driver.get_config("Renewals") == {}

    def test_course_reserves(self) -> None:
        driver = demo_driver()
        assert driver.get_courses() == {"c1": "Cataloging 101"}
        assert driver.get_instructors() == {"i1": "Smith"}
        assert driver.get_departments() == {"d1": "Library Science"}
        assert [r["BIB_ID"] for r in driver.find_reserves("c1", "", "")] == ["1"]
        assert [r["BIB_ID"] for r in driver.find_reserves("", "", "d1")] == ["2"]
        assert [r["BIB_ID"] for r in driver.find_reserves("", "", "")] == ["1", "2"]
        assert driver.find_reserves("c1", "", "d1") == []

    def test_get_new_items(self) -> None:
        driver = demo_driver()
        assert driver.get_new_items(1, 2, 30) == {
            "count": 3,
            "results": [{"id": "1"}, {"id": "2"}],
        }
        assert driver.get_new_items(2, 2, 30) == {"count": 3, "results": [{"id": "3"}]}

    def test_failing_operations(self) -> None:
        driver = demo_driver(failing_operations=["get_statuses", "patron_login"])
        with pytest.raises(IlsException, match="Simulated failure in get_statuses"):
            driver.get_statuses(["1"])
        with pytest.raises(IlsException, match="Simulated failure in patron_login"):
            driver.patron_login("jdoe", "secret")
        assert len(driver.get_status("1")) == 1


class TestDemoBehindRouter:
    @pytest.fixture
    def router(self) -> MultiBackend:
        settings = MultiBackendSettings(
            drivers={"libA": "Demo", "libB": "Demo"},
            default_driver="libA",
            login_drivers=["libA", "libB"],
        )
        loader = DictConfigLoader(
            {"libA": demo_config(), "libB": demo_config(fines={})}
        )
        return MultiBackend.from_settings(settings, IlsDriverRegistry(), loader)

    def test_login_and_account(self, router: MultiBackend):
        patron = router.patron_login("libB.jdoe", "secret")
        assert patron is not None
        assert patron["id"] == "libB.jdoe"
        assert patron["cat_username"] == "libB.jdoe"

        assert router.get_my_fines(patron) == []
        assert router.get_my_transactions(patron) == [
            {"id": "libB.2", "item_id": "2-a", "duedate": "2024-02-01"}
        ]

    def test_old_password_rejected_after_change(self, router: MultiBackend):
        session: dict[str, Any] = {}
        router.login_cache = session
        patron = router.patron_login("libA.jdoe", "secret")
        assert patron is not None

        result = router.change_password(
            {"patron": patron, "oldPassword": "secret", "newPassword": "changed"}
        )
        assert result["success"] is True
        assert session == {}

        assert router.patron_login("libA.jdoe", "secret") is None
        assert router.patron_login("libA.jdoe", "changed") is not None

    def test_holds(self, router: MultiBackend):
        patron = router.patron_login("jdoe", "secret")
        assert patron is not None
        assert patron["cat_username"] == "libA.jdoe"

        result = router.place_hold(
            {"id": "libA.1", "item_id": "libA.1-a", "patron": patron}
        )
        assert result["success"] is True

        [hold] = router.get_my_holds(patron)
        assert hold["id"] == "libA.1"
        assert hold["item_id"] == "libA.1-a"

        token = router.get_cancel_hold_details(hold, patron)
        assert router.cancel_holds({"details": [token], "patron": patron})["count"] == 1
        assert router.get_my_holds(patron) == []

    def test_statuses(self, router: MultiBackend):
        statuses = router.get_statuses(["libA.1", "libB.2", "libB.missing"])
        assert [s[0]["id"] for s in statuses if s] == ["libA.1", "libB.2"]
        assert statuses[2] == []

    def test_transaction_history_is_negotiated(self, router: MultiBackend):
        assert not router.supports_method(
            "get_my_transaction_history", [{"cat_username": "libA.jdoe"}]
        )
