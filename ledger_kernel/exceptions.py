"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
TWO KINDS OF FAILURE
===============================================================================

The engine distinguishes business-rule rejections from caller bugs:

  - Business-rule rejections (duplicate symbol, locked account, invalid
    transaction, cyclic account move, removal preconditions not met) are
    NEVER raised.  Engine mutators return ``False`` and publish the
    ``*_FAILED`` variant of the channel event.

  - Programming contract violations (a required argument is ``None``, an
    immutable account type is changed, an exchange rate is not positive, an
    account is cloned) raise a subclass of ``EngineError``.  They indicate
    a defect in the calling code and are allowed to propagate.

Example:
    if not engine.add_transaction(txn):      # rejection, inspect the bool
        ...
    engine.set_exchange_rate(usd, eur, Decimal("0"), day)
        # raises InvalidExchangeRateError

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    EngineError (base)
    |
    +-- MissingArgumentError
    +-- AccountError
    |   +-- ImmutableAccountTypeError
    |   +-- RootAccountError
    |   +-- AccountCloneError
    |   +-- InvalidAttributeKeyError
    |
    +-- ExchangeRateError
    |   +-- InvalidExchangeRateError
    |
    +-- CommodityError
    |   +-- SameCommodityError
    |
    +-- ConcurrencyError
    |   +-- LockUpgradeError
    |
    +-- EngineLifecycleError
    |   +-- EngineClosedError
    |   +-- DuplicateEngineError
    |
    +-- ConfigurationError

Every class carries a ``code`` class attribute and stores its context as
attributes so that structured log records (see ``logging_config``) can
serialize them.
"""

from typing import Any


class EngineError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "ENGINE_ERROR"


class MissingArgumentError(EngineError):
    """A required argument was None."""

    code: str = "MISSING_ARGUMENT"

    def __init__(self, argument: str, operation: str | None = None):
        self.argument = argument
        self.operation = operation
        where = f" in {operation}" if operation else ""
        super().__init__(f"Required argument '{argument}' is missing{where}")


def require(value: Any, argument: str, operation: str | None = None) -> Any:
    """Return ``value`` or raise MissingArgumentError when it is None."""
    if value is None:
        raise MissingArgumentError(argument, operation)
    return value


# Account-related exceptions


class AccountError(EngineError):
    """Base exception for account contract violations."""

    code: str = "ACCOUNT_ERROR"


class ImmutableAccountTypeError(AccountError):
    """The account type is not mutable once assigned."""

    code: str = "IMMUTABLE_ACCOUNT_TYPE"

    def __init__(self, account_name: str, current_type: str, requested_type: str):
        self.account_name = account_name
        self.current_type = current_type
        self.requested_type = requested_type
        super().__init__(
            f"Account '{account_name}' has immutable type {current_type}; "
            f"cannot change to {requested_type}"
        )


class RootAccountError(AccountError):
    """A root-typed account was used where a regular account is required."""

    code: str = "ROOT_ACCOUNT"

    def __init__(self, account_name: str):
        self.account_name = account_name
        super().__init__(f"Root account type is not allowed here: {account_name}")


class AccountCloneError(AccountError):
    """Accounts are identity objects and cannot be cloned."""

    code: str = "ACCOUNT_CLONE"

    def __init__(self, account_name: str):
        self.account_name = account_name
        super().__init__(f"Account '{account_name}' cannot be cloned")


class InvalidAttributeKeyError(AccountError):
    """Attribute keys must be non-empty strings."""

    code: str = "INVALID_ATTRIBUTE_KEY"

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"Invalid account attribute key: {key!r}")


# Exchange rate exceptions


class ExchangeRateError(EngineError):
    """Base exception for exchange-rate contract violations."""

    code: str = "EXCHANGE_RATE_ERROR"


class InvalidExchangeRateError(ExchangeRateError):
    """Exchange rate is zero or negative."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, base_symbol: str, exchange_symbol: str, rate: Any):
        self.base_symbol = base_symbol
        self.exchange_symbol = exchange_symbol
        self.rate = str(rate)
        super().__init__(
            f"Exchange rate {base_symbol}->{exchange_symbol} must be positive, got {rate}"
        )


# Commodity exceptions


class CommodityError(EngineError):
    """Base exception for commodity contract violations."""

    code: str = "COMMODITY_ERROR"


class SameCommodityError(CommodityError):
    """A commodity update was requested with the node as its own template."""

    code: str = "SAME_COMMODITY"

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Commodity '{symbol}' cannot be updated from itself")


# Concurrency exceptions


class ConcurrencyError(EngineError):
    """Base exception for lock misuse."""

    code: str = "CONCURRENCY_ERROR"


class LockUpgradeError(ConcurrencyError):
    """A thread holding only the read lock asked for the write lock."""

    code: str = "LOCK_UPGRADE"

    def __init__(self, lock_name: str):
        self.lock_name = lock_name
        super().__init__(
            f"Cannot upgrade read lock to write lock on '{lock_name}' (would deadlock)"
        )


# Engine lifecycle exceptions


class EngineLifecycleError(EngineError):
    """Base exception for engine registry misuse."""

    code: str = "ENGINE_LIFECYCLE_ERROR"


class EngineClosedError(EngineLifecycleError):
    """The named engine is not running."""

    code: str = "ENGINE_CLOSED"

    def __init__(self, engine_name: str):
        self.engine_name = engine_name
        super().__init__(f"Engine '{engine_name}' is not running")


class DuplicateEngineError(EngineLifecycleError):
    """An engine with the same name is already running."""

    code: str = "DUPLICATE_ENGINE"

    def __init__(self, engine_name: str):
        self.engine_name = engine_name
        super().__init__(f"Engine '{engine_name}' is already running")


# Configuration exceptions


class ConfigurationError(EngineError):
    """Engine settings could not be loaded or are invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)
