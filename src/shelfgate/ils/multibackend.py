"""
The router that presents several library systems as one.

Every identifier that leaves the router carries the source of the backend it
came from ("libA.12345"). Every identifier handed to a backend has had its
own source removed, so a backend only ever sees the identifiers it issued.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Collection, Mapping, MutableMapping, Sequence
from typing import Any

from shelfgate.core.exceptions import IntegrationException
from shelfgate.ils.capability import CapabilityNegotiator
from shelfgate.ils.config_loader import ConfigLoader
from shelfgate.ils.driver.base import Holding, IlsDriver, Patron
from shelfgate.ils.exceptions import IlsException, NoSuitableBackend, UnavailableReason
from shelfgate.ils.factory import IlsDriverFactory
from shelfgate.ils.namespace import HOLD_ID_FIELDS, IdNamespace, is_container
from shelfgate.ils.settings import MultiBackendSettings
from shelfgate.service.integration_registry.ils_drivers import IlsDriverRegistry
from shelfgate.util.log import (
    LoggerMixin,
    elapsed_time_logging,
    pluralize,
    source_extra,
)

# Patron scoped operations reached through `call_method`, and the parameter
# fields their source is read from.
SOURCE_CHECK_FIELDS: dict[str, tuple[str, ...]] = {
    "cancel_holds": ("cat_username",),
    "cancel_ill_requests": ("cat_username",),
    "cancel_storage_retrieval_requests": ("cat_username",),
    "change_password": ("cat_username",),
    "get_cancel_hold_details": ("cat_username",),
    "get_cancel_ill_request_details": ("cat_username",),
    "get_cancel_storage_retrieval_request_details": ("cat_username",),
    "get_my_fines": ("cat_username",),
    "get_my_profile": ("cat_username",),
    "get_my_transaction_history": ("cat_username",),
    "get_my_transactions": ("cat_username",),
    "renew_my_items": ("cat_username",),
}

# Operations that take no identifiers, and so always go to the default backend.
DEFAULT_DRIVER_METHODS = frozenset(
    {
        "find_reserves",
        "get_courses",
        "get_departments",
        "get_funds",
        "get_instructors",
        "get_new_items",
        "get_offline_mode",
        "get_suppressed_authority_records",
        "get_suppressed_records",
        "login_is_hidden",
    }
)

# Fields examined when no list of source check fields applies.
DEFAULT_SOURCE_KEYS: tuple[int | str, ...] = (0, "id", "cat_username")

# Driver methods that are not library operations.
DRIVER_LIFECYCLE_METHODS = frozenset(
    {
        "init",
        "set_config",
        "settings_load",
        "settings_class",
        "label",
        "description",
        "supports_method",
    }
)

STATUS_ERROR = "An error has occurred"


def login_cache_key(username: str, password: str) -> str:
    return hashlib.sha256(f"{username}\0{password}".encode()).hexdigest()


class MultiBackend(LoggerMixin):
    """Routes each operation to the backend named by its identifiers.

    Read operations degrade to an empty (or False) result when no backend
    can serve them. Operations that change state raise NoSuitableBackend
    instead, so a write is never silently dropped.
    """

    def __init__(
        self,
        settings: MultiBackendSettings,
        factory: IlsDriverFactory,
        negotiator: CapabilityNegotiator | None = None,
        credentials_provider: Callable[[], Patron | None] | None = None,
        login_cache: MutableMapping[str, Patron] | None = None,
    ):
        """
        :param settings: The router's own configuration.
        :param factory: Creates and caches the per-source drivers.
        :param negotiator: Decides which operations a driver supports.
        :param credentials_provider: Returns the logged in patron, if any.
            Used to route `get_config` calls that carry no identifiers.
        :param login_cache: Successful logins, keyed by `login_cache_key`.
            Logins are not cached when this is None.
        """
        self.settings = settings
        self.factory = factory
        self.negotiator = negotiator or CapabilityNegotiator()
        self.namespace = IdNamespace(settings.id_separator)
        self.id_fields: tuple[str, ...] = tuple(settings.id_fields)
        self.credentials_provider = credentials_provider
        self.login_cache = login_cache

    @classmethod
    def from_settings(
        cls,
        settings: MultiBackendSettings,
        registry: IlsDriverRegistry,
        config_loader: ConfigLoader,
        **kwargs: Any,
    ) -> MultiBackend:
        factory = IlsDriverFactory(
            registry,
            config_loader,
            settings.drivers,
            default_driver=settings.default_driver,
            drivers_config_path=settings.drivers_config_path,
        )
        return cls(settings, factory, **kwargs)

    # Identifier helpers

    def get_source(self, identifier: Any) -> str:
        return self.namespace.get_source(identifier)

    def get_local_id(self, identifier: Any) -> Any:
        return self.namespace.get_local_id(identifier)

    def add_id_prefixes(
        self,
        data: Any,
        source: str | None,
        modify_fields: Collection[str] | None = None,
    ) -> Any:
        """Prefix the identifiers in a driver result.

        Scalar results (a pickup location code, a cancel token) are not
        identifiers and are returned as they are.
        """
        if not is_container(data):
            return data
        return self.namespace.add_id_prefixes(
            data, source, self.id_fields if modify_fields is None else modify_fields
        )

    def strip_id_prefixes(
        self,
        data: Any,
        source: str | None,
        modify_fields: Collection[str] | None = None,
        ignore_fields: Collection[str] = (),
    ) -> Any:
        return self.namespace.strip_id_prefixes(
            data,
            source,
            self.id_fields if modify_fields is None else modify_fields,
            ignore_fields,
        )

    def _patron_source(self, patron: Mapping[str, Any] | None) -> str:
        if not patron:
            return ""
        return self.get_source(patron.get("cat_username", ""))

    # Driver resolution

    def get_driver(self, source: str | None) -> IlsDriver[Any] | None:
        return self.factory.get_driver(source)

    def _require_driver(self, source: str | None, method: str) -> IlsDriver[Any]:
        driver = self.get_driver(source)
        if driver is None:
            raise NoSuitableBackend(
                source,
                self.factory.unavailable_reason(source)
                or UnavailableReason.not_registered,
                method,
            )
        return driver

    def _require_method(
        self,
        source: str | None,
        method: str,
        params: Sequence[Any] | None = None,
    ) -> IlsDriver[Any]:
        driver = self._require_driver(source, method)
        if not self.negotiator.driver_supports_method(driver, method, params):
            raise NoSuitableBackend(source, UnavailableReason.unsupported, method)
        return driver

    def driver_supports_method(
        self,
        driver: IlsDriver[Any] | None,
        method: str,
        params: Sequence[Any] | None = None,
    ) -> bool:
        return self.negotiator.driver_supports_method(driver, method, params)

    def driver_supports_source(self, source: str, identifier: Any) -> bool:
        """Whether the backend of `source` may act on `identifier`.

        True when the identifier belongs to the same source, or when the
        backend's driver type serves records of any source. The driver is
        not created to answer this.
        """
        if self.get_source(identifier) == source:
            return True
        driver_class = self.factory.driver_class(source)
        return bool(
            driver_class is not None
            and getattr(driver_class, "SUPPORTS_ANY_SOURCE", False)
        )

    def get_source_from_params(
        self,
        params: Any,
        allowed_keys: Collection[int | str] = DEFAULT_SOURCE_KEYS,
    ) -> str:
        """Find the first registered source among the identifiers in `params`.

        Nested records are searched when they sit at a list position or under
        a "patron" key.
        """
        if isinstance(params, Mapping):
            items: Any = params.items()
        elif is_container(params):
            items = enumerate(params)
        else:
            source = self.get_source(params)
            return source if source in self.factory.drivers else ""

        for key, value in items:
            if is_container(value):
                if isinstance(key, int) or key == "patron":
                    source = self.get_source_from_params(value, allowed_keys)
                    if source:
                        return source
            elif key in allowed_keys:
                source = self.get_source(value)
                if source and source in self.factory.drivers:
                    return source
        return ""

    def get_source_for_method(self, method: str, params: Sequence[Any]) -> str:
        if method in DEFAULT_DRIVER_METHODS:
            return self.settings.default_driver or ""
        check_fields = SOURCE_CHECK_FIELDS.get(method)
        if check_fields:
            source = self.get_source_from_params(params, check_fields)
        else:
            source = self.get_source_from_params(params)
        if not source:
            self.log.debug(f"No source found for {method}, using default")
        return source

    def call_method_if_supported(
        self,
        source: str | None,
        method: str,
        params: Sequence[Any],
        strip_prefixes: bool = True,
        add_prefixes: bool = True,
    ) -> Any:
        """Call `method` on the backend of `source`.

        :param source: The backend to use, or None to find it in `params`.
        :param strip_prefixes: Remove the source from identifiers in `params` first.
        :param add_prefixes: Prefix the identifiers in the result with the source.
        :raises NoSuitableBackend: If the backend is missing or doesn't support `method`.
        """
        if source is None:
            source = self.get_source_for_method(method, params)
        driver = self._require_driver(source, method)
        if strip_prefixes:
            params = [self.strip_id_prefixes(param, source) for param in params]
        if not self.driver_supports_method(driver, method, params):
            raise NoSuitableBackend(source, UnavailableReason.unsupported, method)
        result = getattr(driver, method)(*params)
        if add_prefixes:
            result = self.add_id_prefixes(result, source)
        return result

    def supports_method(self, method: str, params: Sequence[Any] = ()) -> bool:
        """Whether the backend that `params` route to can perform `method`.

        Unknown sources and missing drivers answer False rather than raising.
        So does any method whose source can't be told when there is no
        default backend to fall back on.
        """
        if method == "get_login_drivers":
            return True
        if method == "get_default_login_driver":
            return bool(self.settings.get_default_login_driver())

        source = self.get_source_for_method(method, params)
        if not source and method == "patron_login":
            source = self.settings.get_default_login_driver()
        driver = self.get_driver(source)
        return self.driver_supports_method(driver, method, params)

    def call_method(self, method: str, *params: Any) -> Any:
        """Route any driver operation by the identifiers in its parameters."""
        if method.startswith("_") or method in DRIVER_LIFECYCLE_METHODS:
            raise NoSuitableBackend(None, UnavailableReason.unsupported, method)
        return self.call_method_if_supported(None, method, list(params))

    # Record lookups

    def get_status(self, id: str) -> list[Holding]:
        source = self.get_source(id)
        driver = self.get_driver(source)
        if driver is None:
            return []
        status = driver.get_status(self.get_local_id(id))
        return self.add_id_prefixes(status, source)

    def get_statuses(self, ids: Sequence[str]) -> list[list[Holding]]:
        """Availability of many records, one list per record.

        Records are looked up in one batch per backend. A backend that fails
        yields an error placeholder for each of its records instead of
        failing the whole call; a source without a driver yields nothing.
        """
        by_source: dict[str, list[str]] = {}
        for id in ids:
            by_source.setdefault(self.get_source(id), []).append(id)

        statuses: list[list[Holding]] = []
        for source, source_ids in by_source.items():
            local_ids = [self.get_local_id(id) for id in source_ids]
            try:
                driver = self.get_driver(source)
            except IntegrationException as e:
                self.log.warning(
                    f"Could not create driver for source '{source}': {e}",
                    extra=source_extra(source),
                )
                statuses.extend(self._status_errors(local_ids, source))
                continue
            if driver is None:
                self.log.warning(
                    f"Skipping {pluralize(len(source_ids), 'record')} from source '{source}': no driver",
                    extra=source_extra(source),
                )
                continue

            try:
                with elapsed_time_logging(
                    log_method=self.log.debug,
                    message_prefix=f"Statuses of {pluralize(len(local_ids), 'record')} from '{source}'",
                    skip_start=True,
                ):
                    results = driver.get_statuses(local_ids)
            except IlsException as e:
                self.log.warning(
                    f"Status lookup failed for source '{source}': {e}",
                    extra=source_extra(source),
                )
                statuses.extend(self._status_errors(local_ids, source))
                continue
            statuses.extend(self.add_id_prefixes(result, source) for result in results)
        return statuses

    def _status_errors(
        self, local_ids: Sequence[str], source: str
    ) -> list[list[Holding]]:
        return [
            self.add_id_prefixes([{"id": local_id, "error": STATUS_ERROR}], source)
            for local_id in local_ids
        ]

    def get_holding(
        self,
        id: str,
        patron: Patron | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[Holding]:
        source = self.get_source(id)
        driver = self.get_driver(source)
        if driver is None:
            return []
        # A patron of another library system is not a patron of this one.
        if patron and not self.driver_supports_source(
            source, patron.get("cat_username", "")
        ):
            patron = {}
        holdings = driver.get_holding(
            self.get_local_id(id),
            self.strip_id_prefixes(patron, source),
            options or {},
        )
        return self.add_id_prefixes(holdings, source)

    def get_purchase_history(self, id: str) -> list[dict[str, Any]]:
        source = self.get_source(id)
        driver = self.get_driver(source)
        if driver is None:
            return []
        return driver.get_purchase_history(self.get_local_id(id))

    # Login

    def get_login_drivers(self) -> list[str]:
        return list(self.settings.login_drivers)

    def get_default_login_driver(self) -> str:
        return self.settings.get_default_login_driver()

    def patron_login(self, username: str, password: str) -> Patron | None:
        """Log a patron in to the backend named by the username.

        A username without a registered source goes, whole, to the default
        login backend. The patron record that comes back carries the source
        in its identifiers.
        """
        cache_key = login_cache_key(username, password)
        if self.login_cache is not None and cache_key in self.login_cache:
            self.log.debug("Using cached patron login")
            return dict(self.login_cache[cache_key])

        source = self.get_source(username)
        if source and source in self.factory.drivers:
            local_username = self.get_local_id(username)
        else:
            source = self.get_default_login_driver() or self.settings.default_driver or ""
            local_username = username

        login_drivers = self.get_login_drivers()
        if login_drivers and source not in login_drivers:
            raise NoSuitableBackend(
                source, UnavailableReason.login_disabled, "patron_login"
            )

        driver = self._require_method(source, "patron_login", [local_username, password])
        patron = driver.patron_login(local_username, password)
        if not patron:
            return None

        patron = self.add_id_prefixes(patron, source)
        if self.login_cache is not None:
            self.login_cache[cache_key] = dict(patron)
        return patron

    def forget_login(self, cat_username: str) -> None:
        """Drop every cached login of the patron."""
        if self.login_cache is None or not cat_username:
            return
        stale = [
            key
            for key, patron in self.login_cache.items()
            if patron.get("cat_username") == cat_username
        ]
        for key in stale:
            del self.login_cache[key]
        if stale:
            self.log.debug(
                f"Dropped {pluralize(len(stale), 'cached login')} of '{cat_username}'"
            )

    # Operations of the default backend

    def _call_default(self, method: str, *params: Any) -> Any:
        driver = self._require_method(self.settings.default_driver, method, params)
        return getattr(driver, method)(*params)

    def get_new_items(
        self, page: int, limit: int, days_old: int, fund_id: str | None = None
    ) -> dict[str, Any]:
        result = self._call_default("get_new_items", page, limit, days_old, fund_id)
        if isinstance(result, Mapping) and "results" in result:
            result = {
                **result,
                "results": self.add_id_prefixes(
                    result["results"], self.settings.default_driver
                ),
            }
        return result

    def get_departments(self) -> dict[str, str]:
        return self._call_default("get_departments")

    def get_instructors(self) -> dict[str, str]:
        return self._call_default("get_instructors")

    def get_courses(self) -> dict[str, str]:
        return self._call_default("get_courses")

    def find_reserves(
        self, course: str, instructor: str, department: str
    ) -> list[dict[str, Any]]:
        reserves = self._call_default("find_reserves", course, instructor, department)
        return self.add_id_prefixes(
            reserves, self.settings.default_driver, ["BIB_ID"]
        )

    # Patron account

    def _call_for_patron(
        self, method: str, patron: Patron, *params: Any
    ) -> Any:
        return self.call_method_if_supported(
            self._patron_source(patron), method, [patron, *params]
        )

    def get_my_profile(self, patron: Patron) -> dict[str, Any]:
        source = self._patron_source(patron)
        driver = self.get_driver(source)
        if driver is None or not self.driver_supports_method(
            driver, "get_my_profile", [patron]
        ):
            return {}
        profile = driver.get_my_profile(self.strip_id_prefixes(patron, source))
        return self.add_id_prefixes(profile, source)

    def get_my_transactions(self, patron: Patron) -> list[dict[str, Any]]:
        return self._call_for_patron("get_my_transactions", patron)

    def get_my_transaction_history(
        self, patron: Patron, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return self._call_for_patron(
            "get_my_transaction_history", patron, dict(params or {})
        )

    def get_my_fines(self, patron: Patron) -> list[dict[str, Any]]:
        return self._call_for_patron("get_my_fines", patron)

    def get_my_holds(self, patron: Patron) -> list[dict[str, Any]]:
        source = self._patron_source(patron)
        holds = self.call_method_if_supported(
            source, "get_my_holds", [patron], add_prefixes=False
        )
        return self.add_id_prefixes(holds, source, HOLD_ID_FIELDS)

    def get_my_storage_retrieval_requests(self, patron: Patron) -> list[dict[str, Any]]:
        source = self._patron_source(patron)
        driver = self._require_driver(source, "get_my_storage_retrieval_requests")
        if not self.driver_supports_method(
            driver, "get_my_storage_retrieval_requests", [patron]
        ):
            return []
        requests = driver.get_my_storage_retrieval_requests(
            self.strip_id_prefixes(patron, source)
        )
        return self.add_id_prefixes(requests, source)

    def get_my_ill_requests(self, patron: Patron) -> list[dict[str, Any]]:
        source = self._patron_source(patron)
        driver = self._require_driver(source, "get_my_ill_requests")
        if not self.driver_supports_method(driver, "get_my_ill_requests", [patron]):
            return []
        requests = driver.get_my_ill_requests(self.strip_id_prefixes(patron, source))
        return self.add_id_prefixes(requests, source, HOLD_ID_FIELDS)

    def get_request_blocks(self, patron: Patron) -> list[str] | bool:
        source = self._patron_source(patron)
        driver = self._require_driver(source, "get_request_blocks")
        if not self.driver_supports_method(driver, "get_request_blocks", [patron]):
            return False
        return driver.get_request_blocks(self.strip_id_prefixes(patron, source))

    def get_account_blocks(self, patron: Patron) -> list[str] | bool:
        source = self._patron_source(patron)
        driver = self._require_driver(source, "get_account_blocks")
        if not self.driver_supports_method(driver, "get_account_blocks", [patron]):
            return False
        return driver.get_account_blocks(self.strip_id_prefixes(patron, source))

    def change_password(self, details: Mapping[str, Any]) -> dict[str, Any]:
        """Change a patron's password.

        A successful change drops the patron's cached logins, so the old
        password stops working at once.
        """
        patron = details.get("patron")
        result = self.call_method_if_supported(
            self._patron_source(patron), "change_password", [details]
        )
        if isinstance(result, Mapping) and result.get("success") and patron:
            self.forget_login(patron.get("cat_username", ""))
        return result

    # Holds

    def _check_request(
        self, method: str, id: str, data: Mapping[str, Any], patron: Patron | None
    ) -> bool:
        if not patron or "cat_username" not in patron:
            return False
        source = self._patron_source(patron)
        if not self.driver_supports_source(source, id):
            return False
        driver = self.get_driver(source)
        if driver is None or not self.driver_supports_method(
            driver, method, [id, data, patron]
        ):
            return False
        return getattr(driver, method)(
            self.strip_id_prefixes(id, source),
            self.strip_id_prefixes(data, source),
            self.strip_id_prefixes(patron, source),
        )

    def check_request_is_valid(
        self, id: str, data: Mapping[str, Any], patron: Patron | None
    ) -> bool:
        return self._check_request("check_request_is_valid", id, data, patron)

    def check_storage_retrieval_request_is_valid(
        self, id: str, data: Mapping[str, Any], patron: Patron | None
    ) -> bool:
        return self._check_request(
            "check_storage_retrieval_request_is_valid", id, data, patron
        )

    def get_pick_up_locations(
        self,
        patron: Patron | None = None,
        hold_details: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        patron = patron or {}
        hold_details = hold_details or {}
        id = hold_details.get("id") or hold_details.get("item_id") or ""
        source = self.get_source(patron.get("cat_username") or id)
        if id and not self.driver_supports_source(source, id):
            # Holds can only be placed at the patron's own library.
            return []
        driver = self._require_method(source, "get_pick_up_locations")
        locations = driver.get_pick_up_locations(
            self.strip_id_prefixes(patron, source),
            self.strip_id_prefixes(hold_details, source, HOLD_ID_FIELDS),
        )
        return self.add_id_prefixes(locations, source)

    def get_default_pick_up_location(
        self,
        patron: Patron | None = None,
        hold_details: Mapping[str, Any] | None = None,
    ) -> Any:
        source = self._patron_source(patron)
        if hold_details and not self.driver_supports_source(
            source, hold_details.get("id", "")
        ):
            return False
        driver = self._require_method(source, "get_default_pick_up_location")
        location = driver.get_default_pick_up_location(
            self.strip_id_prefixes(patron, source),
            self.strip_id_prefixes(hold_details, source, HOLD_ID_FIELDS),
        )
        return self.add_id_prefixes(location, source)

    def get_request_groups(
        self,
        id: str,
        patron: Patron,
        hold_details: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        source = self._patron_source(patron)
        if not self.driver_supports_source(source, id):
            return []
        driver = self._require_driver(source, "get_request_groups")
        if not self.driver_supports_method(driver, "get_request_groups"):
            return []
        return driver.get_request_groups(
            self.strip_id_prefixes(id, source),
            self.strip_id_prefixes(patron, source),
            self.strip_id_prefixes(hold_details, source, HOLD_ID_FIELDS),
        )

    def get_default_request_group(
        self, patron: Patron, hold_details: Mapping[str, Any] | None = None
    ) -> Any:
        source = self._patron_source(patron)
        if hold_details and not self.driver_supports_source(
            source, hold_details.get("id", "")
        ):
            return False
        driver = self._require_driver(source, "get_default_request_group")
        if not self.driver_supports_method(driver, "get_default_request_group"):
            return False
        group = driver.get_default_request_group(
            self.strip_id_prefixes(patron, source),
            self.strip_id_prefixes(hold_details, source, HOLD_ID_FIELDS),
        )
        return self.add_id_prefixes(group, source)

    def place_hold(self, details: Mapping[str, Any]) -> dict[str, Any]:
        """Place a hold for the patron in `details`.

        A record of another library system is refused before any backend is
        contacted.
        """
        source = self._patron_source(details.get("patron"))
        if not self.driver_supports_source(source, details.get("id", "")):
            self.log.info(
                f"Refusing hold on '{details.get('id')}' for a patron of '{source}'",
                extra=source_extra(source),
            )
            return {"success": False, "sysMessage": "hold_wrong_user_institution"}
        driver = self._require_method(source, "place_hold", [details])
        return driver.place_hold(
            self.strip_id_prefixes(details, source, HOLD_ID_FIELDS)
        )

    def get_cancel_hold_details(
        self, hold: Mapping[str, Any], patron: Patron | None = None
    ) -> Any:
        source = self.get_source(
            (patron or {}).get("cat_username")
            or hold.get("id")
            or hold.get("item_id")
            or ""
        )
        params = [
            self.strip_id_prefixes(hold, source, HOLD_ID_FIELDS),
            self.strip_id_prefixes(patron, source),
        ]
        return self.call_method_if_supported(
            source, "get_cancel_hold_details", params, strip_prefixes=False
        )

    def cancel_holds(self, details: Mapping[str, Any]) -> dict[str, Any]:
        return self.call_method_if_supported(
            self._patron_source(details.get("patron")), "cancel_holds", [details]
        )

    def get_renew_details(self, checkout_details: Mapping[str, Any]) -> Any:
        source = self.get_source(checkout_details.get("id", ""))
        return self.call_method_if_supported(
            source, "get_renew_details", [checkout_details]
        )

    def renew_my_items(self, details: Mapping[str, Any]) -> dict[str, Any]:
        return self.call_method_if_supported(
            self._patron_source(details.get("patron")), "renew_my_items", [details]
        )

    # Storage retrieval requests

    def place_storage_retrieval_request(
        self, details: Mapping[str, Any]
    ) -> dict[str, Any]:
        source = self._patron_source(details.get("patron"))
        if not self.driver_supports_source(source, details.get("id", "")):
            return {"success": False, "sysMessage": "storage_wrong_user_institution"}
        driver = self._require_method(
            source, "place_storage_retrieval_request", [details]
        )
        return driver.place_storage_retrieval_request(
            self.strip_id_prefixes(details, source)
        )

    def cancel_storage_retrieval_requests(
        self, details: Mapping[str, Any]
    ) -> dict[str, Any]:
        return self.call_method_if_supported(
            self._patron_source(details.get("patron")),
            "cancel_storage_retrieval_requests",
            [details],
        )

    def get_cancel_storage_retrieval_request_details(
        self, details: Mapping[str, Any], patron: Patron | None = None
    ) -> Any:
        source = self._patron_source(patron) or self.get_source(details.get("id", ""))
        return self.call_method_if_supported(
            source,
            "get_cancel_storage_retrieval_request_details",
            [details, patron],
        )

    # Interlibrary loan requests. The record belongs to the lending library,
    # so the patron is passed on untouched.

    def check_ill_request_is_valid(
        self, id: str, data: Mapping[str, Any], patron: Patron
    ) -> bool:
        source = self.get_source(id)
        driver = self.get_driver(source)
        if driver is None or not self.driver_supports_method(
            driver, "check_ill_request_is_valid"
        ):
            return False
        return driver.check_ill_request_is_valid(
            self.strip_id_prefixes(id, source),
            self.strip_id_prefixes(data, source),
            patron,
        )

    def get_ill_pickup_libraries(self, id: str, patron: Patron) -> Any:
        source = self.get_source(id)
        return self.call_method_if_supported(
            source,
            "get_ill_pickup_libraries",
            [self.strip_id_prefixes(id, source, ["id"]), patron],
            strip_prefixes=False,
            add_prefixes=False,
        )

    def get_ill_pickup_locations(
        self, id: str, pickup_lib: str, patron: Patron
    ) -> Any:
        source = self.get_source(id)
        return self.call_method_if_supported(
            source,
            "get_ill_pickup_locations",
            [self.strip_id_prefixes(id, source, ["id"]), pickup_lib, patron],
            strip_prefixes=False,
            add_prefixes=False,
        )

    def place_ill_request(self, details: Mapping[str, Any]) -> dict[str, Any]:
        source = self.get_source(details.get("id", ""))
        params = [self.strip_id_prefixes(details, source, ["id"], ["patron"])]
        return self.call_method_if_supported(
            source,
            "place_ill_request",
            params,
            strip_prefixes=False,
            add_prefixes=False,
        )

    def cancel_ill_requests(self, details: Mapping[str, Any]) -> dict[str, Any]:
        return self.call_method_if_supported(
            self._patron_source(details.get("patron")),
            "cancel_ill_requests",
            [details],
        )

    def get_cancel_ill_request_details(
        self, details: Mapping[str, Any], patron: Patron | None = None
    ) -> Any:
        source = self._patron_source(patron) or self.get_source(details.get("id", ""))
        return self.call_method_if_supported(
            source, "get_cancel_ill_request_details", [details, patron]
        )

    # Configuration

    def get_config(
        self, function: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """Driver configuration for `function`, from the backend `params` point to.

        Without identifiers in `params`, the logged in patron decides the
        backend. An empty dict is returned when there is no backend to ask.
        """
        params = params or {}
        source = self.get_source_from_params(
            [params],
            ("id", "cat_username"),
        )
        if not source and self.credentials_provider is not None:
            try:
                patron = self.credentials_provider()
            except IlsException as e:
                self.log.warning(f"Could not look up stored credentials: {e}")
                return {}
            if patron:
                source = self._patron_source(patron)
        driver = self.get_driver(source)
        if driver is None or not self.driver_supports_method(
            driver, "get_config", [function, params]
        ):
            return {}
        return driver.get_config(function, self.strip_id_prefixes(params, source))
