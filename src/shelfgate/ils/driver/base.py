from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from functools import cached_property
from typing import Any, TypeVar

from shelfgate.core.config import CannotLoadConfiguration
from shelfgate.integration.base import HasIntegrationConfiguration
from shelfgate.integration.settings import BaseSettings
from shelfgate.util.log import LoggerMixin

Patron = dict[str, Any]
Holding = dict[str, Any]

SettingsType = TypeVar("SettingsType", bound=BaseSettings, covariant=True)


class IlsDriver(HasIntegrationConfiguration[SettingsType], LoggerMixin, ABC):
    """Adapter for exactly one library system.

    A driver is created unconfigured, handed its configuration document with
    `set_config` and then made ready with `init`. Only the record lookups
    below are required. Everything else a library system might offer is
    optional, and a driver offers it simply by defining the method:

      patron_login(username, password)
      get_my_profile(patron), get_my_transactions(patron),
      get_my_transaction_history(patron, params), get_my_holds(patron),
      get_my_fines(patron), get_my_storage_retrieval_requests(patron),
      get_my_ill_requests(patron), get_request_blocks(patron),
      get_account_blocks(patron)
      place_hold(details), cancel_holds(details), get_cancel_hold_details(hold, patron),
      renew_my_items(details), place_storage_retrieval_request(details),
      cancel_storage_retrieval_requests(details), place_ill_request(details),
      cancel_ill_requests(details), change_password(details)
      check_request_is_valid(id, data, patron), ...
      get_pick_up_locations(patron, hold_details), get_default_pick_up_location(...),
      get_request_groups(id, patron, hold_details), get_default_request_group(...)
      get_config(function, params)
      get_courses(), get_instructors(), get_departments(),
      find_reserves(course, instructor, department), get_new_items(...)

    A driver whose support depends on its configuration also defines
    `supports_method(method, params) -> bool`, which is then trusted over the
    presence of the method.
    """

    # Drivers that serve records of any source, for example a demo backend
    # shared by every configured source, set this to True to pass the router's
    # same-source checks.
    SUPPORTS_ANY_SOURCE = False

    def __init__(self) -> None:
        self._config: Mapping[str, Any] | None = None

    def set_config(self, config: Mapping[str, Any]) -> None:
        self._config = config
        self.__dict__.pop("settings", None)

    @property
    def config(self) -> Mapping[str, Any]:
        if self._config is None:
            raise CannotLoadConfiguration(
                f"{self.__class__.__name__} has not been configured"
            )
        return self._config

    @cached_property
    def settings(self) -> SettingsType:
        return self.settings_load(self.config)

    def init(self) -> None:
        """Validate the configuration and prepare the driver for use.

        Drivers that open connections or fetch tokens do so here, after
        calling this implementation.

        :raises CannotLoadConfiguration: If the configuration is missing or invalid.
        """
        # Loading the settings validates them.
        self.settings

    @abstractmethod
    def get_status(self, id: str) -> list[Holding]:
        """Availability of the items of one record.

        Each holding has at least id, availability, status, location,
        reserve and callnumber.
        """
        ...

    def get_statuses(self, ids: Sequence[str]) -> list[list[Holding]]:
        """Availability for a batch of records, one list per record.

        Drivers that can look up many records in one request should
        override this.
        """
        return [self.get_status(id) for id in ids]

    @abstractmethod
    def get_holding(
        self,
        id: str,
        patron: Patron | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[Holding]:
        """Full holdings of one record, optionally as seen by a patron."""
        ...

    @abstractmethod
    def get_purchase_history(self, id: str) -> list[dict[str, Any]]:
        """Acquisitions history of one record (usually issues of a serial)."""
        ...
