from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum, auto
from typing import Any

from shelfgate.ils.exceptions import IlsException
from shelfgate.ils.multibackend import MultiBackend
from shelfgate.util.log import LoggerMixin

FeatureConfig = dict[str, Any]


class HoldsMode(StrEnum):
    disabled = auto()
    none = auto()
    all = auto()
    holds = auto()
    driver = auto()


class IlsConnection(LoggerMixin):
    """What the library systems behind the router let a caller do.

    Front ends use this to decide which features to offer: `check_capability`
    answers whether one operation is available, `check_function` collects
    everything needed to present a feature (a hold form, a renewal button)
    or returns False when the feature is unavailable.
    """

    def __init__(
        self,
        router: MultiBackend,
        holds_mode: HoldsMode = HoldsMode.all,
        cancel_holds_enabled: bool = False,
        renewals_enabled: bool = False,
        cancel_storage_retrieval_requests_enabled: bool = False,
        cancel_ill_requests_enabled: bool = False,
    ):
        self.router = router
        self.holds_mode = holds_mode
        self.cancel_holds_enabled = cancel_holds_enabled
        self.renewals_enabled = renewals_enabled
        self.cancel_storage_retrieval_requests_enabled = (
            cancel_storage_retrieval_requests_enabled
        )
        self.cancel_ill_requests_enabled = cancel_ill_requests_enabled

        self._feature_checks: dict[
            str, Callable[[FeatureConfig | None, Mapping[str, Any] | None], Any]
        ] = {
            "Holds": self._check_holds,
            "cancelHolds": self._check_cancel_holds,
            "Renewals": self._check_renewals,
            "StorageRetrievalRequests": self._check_storage_retrieval_requests,
            "cancelStorageRetrievalRequests": self._check_cancel_storage_retrieval_requests,
            "ILLRequests": self._check_ill_requests,
            "cancelILLRequests": self._check_cancel_ill_requests,
            "changePassword": self._check_change_password,
            "getMyTransactions": self._check_get_my_transactions,
            "getMyTransactionHistory": self._check_get_my_transaction_history,
        }

    def check_capability(
        self,
        method: str,
        params: Sequence[Any] | None = None,
        throw: bool = False,
    ) -> bool:
        """Whether the router can perform `method` with `params`.

        :param throw: Re-raise an IlsException from the backend instead of
            answering False.
        """
        try:
            if not callable(getattr(self.router, method, None)):
                return False
            return self.router.supports_method(method, list(params or []))
        except IlsException as e:
            self.log.error(f"check_capability({method}) failed: {e}")
            if throw:
                raise
        return False

    def check_function(
        self, function: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """The configuration of a feature, or False if it is unavailable."""
        check = self._feature_checks.get(function)
        if check is None:
            return False
        try:
            function_config = (
                self.router.get_config(function, params)
                if self.check_capability("get_config", [function, params], throw=True)
                else None
            )
            return check(function_config, params)
        except IlsException as e:
            self.log.error(f"check_function({function}) failed: {e}")
            return False

    def _params_list(self, params: Mapping[str, Any] | None) -> list[Any]:
        return [dict(params or {})]

    def _check_holds(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if (
            self.holds_mode in (HoldsMode.none, HoldsMode.disabled)
            or not config
            or "HMACKeys" not in config
            or not self.check_capability("place_hold", self._params_list(params))
        ):
            return False
        response: FeatureConfig = {
            "function": "place_hold",
            "HMACKeys": config["HMACKeys"].split(":"),
        }
        for key in ("defaultRequiredDate", "extraHoldFields", "consortium"):
            if key in config:
                response[key] = config[key]
        if config.get("updateFields"):
            response["updateFields"] = [
                field.strip() for field in config["updateFields"].split(":")
            ]
        response["helpText"] = config.get("helpText", "")
        response["pickUpLocationCheckLimit"] = int(
            config.get("pickUpLocationCheckLimit", 0)
        )
        return response

    def _check_cancel_holds(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.cancel_holds_enabled and self.check_capability(
            "cancel_holds", self._params_list(params)
        ):
            return {"function": "cancel_holds"}
        return False

    def _check_renewals(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.renewals_enabled and self.check_capability(
            "renew_my_items", self._params_list(params)
        ):
            return {"function": "renew_my_items"}
        return False

    def _check_storage_retrieval_requests(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if (
            not config
            or "HMACKeys" not in config
            or not self.check_capability(
                "place_storage_retrieval_request", self._params_list(params)
            )
        ):
            return False
        response: FeatureConfig = {
            "function": "place_storage_retrieval_request",
            "HMACKeys": config["HMACKeys"].split(":"),
            "helpText": config.get("helpText", ""),
        }
        if "extraFields" in config:
            response["extraFields"] = config["extraFields"]
        return response

    def _check_cancel_storage_retrieval_requests(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.cancel_storage_retrieval_requests_enabled and self.check_capability(
            "cancel_storage_retrieval_requests", self._params_list(params)
        ):
            return {"function": "cancel_storage_retrieval_requests"}
        return False

    def _check_ill_requests(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if (
            not config
            or "HMACKeys" not in config
            or not self.check_capability("place_ill_request", self._params_list(params))
        ):
            return False
        response: FeatureConfig = {
            "function": "place_ill_request",
            "HMACKeys": config["HMACKeys"].split(":"),
            "helpText": config.get("helpText", ""),
        }
        for key in ("defaultRequiredDate", "extraFields"):
            if key in config:
                response[key] = config[key]
        return response

    def _check_cancel_ill_requests(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.cancel_ill_requests_enabled and self.check_capability(
            "cancel_ill_requests", self._params_list(params)
        ):
            return {"function": "cancel_ill_requests"}
        return False

    def _check_change_password(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.check_capability("change_password", self._params_list(params)):
            return {"function": "change_password"}
        return False

    def _check_get_my_transactions(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.check_capability("get_my_transactions", self._params_list(params)):
            return config or {}
        return False

    def _check_get_my_transaction_history(
        self, config: FeatureConfig | None, params: Mapping[str, Any] | None
    ) -> FeatureConfig | bool:
        if self.check_capability(
            "get_my_transaction_history", self._params_list(params)
        ):
            return config or {}
        return False
