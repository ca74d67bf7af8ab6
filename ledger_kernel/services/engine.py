"""
Module: ledger_kernel.services.engine
Responsibility: The coordinating facade over the ledger object graph.  Every
    state change goes through an Engine method that validates it, mutates the
    graph, persists it through the DAO and publishes a Message.
Architecture position: Kernel > Services.  The only writer of domain objects
    once they are stored.  Depends on domain/, dao/base.py, message/,
    concurrent/ and services/background.py.

Invariants enforced:
    - Every transaction accepted balances entry by entry and references only
      unlocked, non-placeholder accounts.
    - The account tree stays acyclic; the root is never removed or moved.
    - Every mutator runs inside the engine-wide write lock and every
      accessor inside its read lock.
    - Messages produced by a mutation are published after the outermost
      write lock is released, in the order they were produced.
    - Removed objects are marked and wrapped in a TrashObject; they are
      physically deleted by ``empty_trash`` once old enough, oldest first.

Failure modes:
    - Business rejections return False (or None) and publish the ``_FAILED``
      twin of the operation's event.  They never raise.
    - Contract violations raise EngineError subclasses: MissingArgumentError,
      RootAccountError, ImmutableAccountTypeError, InvalidExchangeRateError,
      InvalidAttributeKeyError, SameCommodityError, EngineClosedError.
    - Storage failures are reported by the DAO as False and handled as
      business rejections.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from ledger_config.schema import EngineSettings
from ledger_kernel.concurrent.locks import LockManager
from ledger_kernel.dao.base import EngineDAO, T
from ledger_kernel.domain import market_price
from ledger_kernel.domain.account import (
    MAX_ATTRIBUTE_LENGTH,
    Account,
    AccountGroup,
    AccountType,
    RootAccount,
)
from ledger_kernel.domain.budget import Budget, BudgetGoal, BudgetResult, compute_budget_result
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commodity import (
    CommodityNode,
    CurrencyNode,
    SecurityHistoryEvent,
    SecurityHistoryNode,
    SecurityNode,
)
from ledger_kernel.domain.config import Config
from ledger_kernel.domain.currency import DefaultCurrencies
from ledger_kernel.domain.exchange_rate import (
    ExchangeRate,
    ExchangeRateHistoryNode,
    build_exchange_rate_id,
    is_canonical_direction,
)
from ledger_kernel.domain.investment import InvestmentTransaction, validate_investment_transaction
from ledger_kernel.domain.reminder import PendingReminder, Reminder, ReminderType, add_months
from ledger_kernel.domain.stored_object import StoredObject, TrashObject
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction import ReconciledState, Transaction, TransactionType
from ledger_kernel.domain.values import ZERO, divide, invert
from ledger_kernel.exceptions import (
    EngineClosedError,
    InvalidExchangeRateError,
    RootAccountError,
    SameCommodityError,
    require,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.message.bus import MessageBus
from ledger_kernel.message.channels import ChannelEvent, MessageChannel, MessageProperty
from ledger_kernel.message.message import Message
from ledger_kernel.services.background import (
    BackgroundCallable,
    BackgroundCounter,
    ScheduledExecutor,
    SecuritiesUpdateMonitor,
)
from ledger_kernel.services.updates import (
    ExchangeRateUpdateClient,
    SecurityUpdateClient,
    build_security_update_callables,
    should_automatic_update_occur,
)

logger = get_logger("services.engine")

_TRUE = "true"


class Engine:
    """
    Ledger engine facade.

    Contract:
        Callers hand domain objects to the engine and never mutate stored
        objects directly.  Obtain engines through ``engine_factory`` so that
        each named engine has exactly one instance and one message bus.

    Guarantees:
        - Mutators return True/False (or the created object / None) and
          publish exactly the success or the ``_FAILED`` event.
        - Readers see the state as of the last completed mutation.
        - ``shutdown`` stops background work and releases the DAO; any
          later call raises EngineClosedError.
    """

    def __init__(
        self,
        dao: EngineDAO,
        name: str,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        security_update_client: SecurityUpdateClient | None = None,
        exchange_rate_update_client: ExchangeRateUpdateClient | None = None,
    ) -> None:
        self._dao = require(dao, "dao", "Engine")
        self.name = require(name, "name", "Engine")
        self.uuid: UUID = uuid4()
        self.settings = settings or EngineSettings()
        self.clock = clock or SystemClock()
        self.security_update_client = security_update_client
        self.exchange_rate_update_client = exchange_rate_update_client

        self._lock_manager = LockManager()
        self._data_lock = self._lock_manager.get_lock("engine")
        self._local = threading.local()
        self._bus = MessageBus.get_instance(name)
        self._counter = BackgroundCounter(self._bus, self.uuid)
        self._executor: ScheduledExecutor | None = None
        self._update_monitor: SecuritiesUpdateMonitor | None = None
        self._closed = False

        with LogContext.bind(engine=name):
            self._initialize()
            self._check_and_correct()
            logger.info("engine_started", extra={"engine_id": str(self.uuid)})

        self._bus.fire_event(Message(MessageChannel.SYSTEM, ChannelEvent.FILE_LOAD_SUCCESS, self.uuid))

        if self.settings.background.enabled:
            self.start_background_services()

    # ------------------------------------------------------------------
    # Locking and message plumbing
    # ------------------------------------------------------------------

    @property
    def message_bus(self) -> MessageBus:
        return self._bus

    @property
    def dao(self) -> EngineDAO:
        return self._dao

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise EngineClosedError(self.name)

    @contextmanager
    def _mutation(self, operation: str) -> Iterator[None]:
        """Write lock plus deferred publication of the messages it produces."""
        self._check_open()
        outermost = not self._data_lock.is_write_locked_by_current_thread()
        self._data_lock.acquire_write()
        if outermost:
            self._local.messages = []
        try:
            with LogContext.bind(engine=self.name, operation=operation):
                yield
        finally:
            messages: list[Message] = []
            if outermost:
                messages = self._local.messages
                self._local.messages = None
            self._data_lock.release_write()
            for message in messages:
                self._bus.fire_event(message)

    @contextmanager
    def _reading(self) -> Iterator[None]:
        self._check_open()
        with self._data_lock.read_lock():
            yield

    def _post(self, channel: MessageChannel, event: ChannelEvent, **properties: Any) -> None:
        message = Message(channel, event, self.uuid)
        for key, value in properties.items():
            message.set_object(MessageProperty[key.upper()], value)
        queue = getattr(self._local, "messages", None)
        if queue is not None and self._data_lock.is_write_locked_by_current_thread():
            queue.append(message)
        else:
            self._bus.fire_event(message)

    def _reject(
        self, channel: MessageChannel, event: ChannelEvent, reason: str, **properties: Any
    ) -> bool:
        logger.warning(
            "operation_rejected",
            extra={"event": event.name, "reason": reason},
        )
        self._post(channel, event, **properties)
        return False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _initialize(self) -> None:
        with self._mutation("initialize"):
            config = self._dao.get_config_dao().get_default_config()
            commodity_dao = self._dao.get_commodity_dao()

            if config.default_currency is None:
                code = self.settings.ledger.default_currency
                node = commodity_dao.get_currency_by_symbol(code)
                if node is None:
                    if DefaultCurrencies.is_known(code):
                        node = DefaultCurrencies.build_node(code)
                    else:
                        node = CurrencyNode(code)
                    commodity_dao.add_commodity(node)
                config.default_currency = node

            if self._dao.get_account_dao().get_root_account() is None:
                root = RootAccount(config.default_currency)
                self._dao.get_account_dao().add_root_account(root)
                config.account_separator = self.settings.ledger.account_separator
                logger.info("root_account_created", extra={"account_id": str(root.uuid)})

            self._dao.get_config_dao().update(config)

    def _check_and_correct(self) -> None:
        with self._mutation("check_and_correct"):
            config = self._dao.get_config_dao().get_default_config()
            account_dao = self._dao.get_account_dao()
            root = account_dao.get_root_account()

            for account in account_dao.get_account_list():
                account._set_clock(self.clock)
                changed = False
                if account.account_type is None:
                    account._set_account_type(AccountType.BANK)
                    changed = True
                if account.currency_node is None:
                    account._set_currency_node(config.default_currency)
                    changed = True
                if changed:
                    logger.warning("account_corrected", extra={"account_id": str(account.uuid)})
                    account_dao.update_account(account)

            for extra_root in account_dao.get_account_list():
                if (
                    isinstance(extra_root, RootAccount)
                    and extra_root is not root
                    and extra_root.get_child_count() == 0
                    and extra_root.get_transaction_count() == 0
                ):
                    logger.warning(
                        "extra_root_removed", extra={"account_id": str(extra_root.uuid)}
                    )
                    self._move_object_to_trash(extra_root)

            if not config.is_current_version():
                config.update_version()
                self._dao.get_config_dao().update(config)

    # ------------------------------------------------------------------
    # Trash and stored objects
    # ------------------------------------------------------------------

    def _move_object_to_trash(self, obj: StoredObject) -> bool:
        obj.marked_for_removal = True
        trash = TrashObject(obj, self.clock.now())
        if not self._dao.get_trash_dao().add(trash):
            logger.error("trash_add_failed", extra={"object_id": str(obj.uuid)})
            return False
        return True

    def get_trash_object(self, uuid: UUID) -> TrashObject | None:
        with self._reading():
            for trash in self._dao.get_trash_dao().get_trash_objects():
                if trash.object.uuid == uuid:
                    return trash
        return None

    def get_trash_objects(self) -> list[TrashObject]:
        with self._reading():
            return sorted(self._dao.get_trash_dao().get_trash_objects())

    def empty_trash(self) -> int:
        """Physically delete trash old enough to evict, oldest first."""
        with self._mutation("empty_trash"):
            now = self.clock.now()
            maximum_age = timedelta(seconds=self.settings.trash.maximum_age_seconds)
            trash_dao = self._dao.get_trash_dao()
            removed = 0
            for trash in sorted(trash_dao.get_trash_objects()):
                if now - trash.date < maximum_age:
                    break
                if trash_dao.remove(trash):
                    removed += 1
            if removed:
                logger.info("trash_emptied", extra={"removed": removed})
            return removed

    def get_stored_objects(self) -> list[StoredObject]:
        with self._reading():
            return sorted(
                (o for o in self._dao.get_stored_objects() if not o.marked_for_removal),
                key=lambda o: (type(o).__name__, str(o.uuid)),
            )

    def get_stored_object_by_uuid(self, cls: type[T], uuid: UUID) -> T | None:
        with self._reading():
            return self._dao.get_object_by_uuid(cls, uuid)

    def is_stored(self, obj: StoredObject) -> bool:
        with self._reading():
            found = self._dao.get_object_by_uuid(type(obj), obj.uuid)
            return found is not None and not found.marked_for_removal

    def is_dirty(self) -> bool:
        return self._dao.is_dirty()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def add_account(self, parent: Account, child: Account) -> bool:
        """
        Attach ``child`` under ``parent``.

        A ROOT-type child raises RootAccountError instead of returning False.
        """
        require(parent, "parent", "add_account")
        require(child, "child", "add_account")
        if child.account_type is AccountType.ROOT:
            raise RootAccountError(child.name)

        with self._mutation("add_account"):
            account_dao = self._dao.get_account_dao()

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_ADD_FAILED, reason, account=child
                )

            if child.account_type is None or child.currency_node is None:
                return reject("account type and currency are required")
            if account_dao.get_account_by_uuid(child.uuid) is not None:
                return reject("account already stored")
            if parent.marked_for_removal or account_dao.get_account_by_uuid(parent.uuid) is None:
                return reject("parent is not stored")
            child._set_clock(self.clock)
            if not parent.add_child(child):
                return reject("parent refused child")
            if not account_dao.add_account(parent, child):
                parent.remove_child(child)
                return reject("persistence failed")

            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_ADD, account=child)
            logger.info("account_added", extra={"account_id": str(child.uuid), "account_name": child.name})
            return True

    def remove_account(self, account: Account) -> bool:
        require(account, "account", "remove_account")
        with self._mutation("remove_account"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_REMOVE_FAILED, reason, account=account
                )

            if isinstance(account, RootAccount) or account.parent is None:
                return reject("root account cannot be removed")
            if account.get_transaction_count() > 0:
                return reject("account has transactions")
            if account.get_child_count() > 0:
                return reject("account has children")

            parent = account.parent
            parent.remove_child(account)
            self._purge_budget_goals(account)
            self._move_object_to_trash(account)

            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_REMOVE, account=account)
            logger.info("account_removed", extra={"account_id": str(account.uuid)})
            return True

    def move_account(self, account: Account, new_parent: Account) -> bool:
        """Re-parent ``account``; refused when it would create a cycle."""
        require(account, "account", "move_account")
        require(new_parent, "new_parent", "move_account")
        with self._mutation("move_account"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY_FAILED, reason, account=account
                )

            if isinstance(account, RootAccount) or account.parent is None:
                return reject("root account cannot be moved")
            if new_parent is account or account.is_descendant(new_parent):
                return reject("new parent is the account or one of its descendants")
            if new_parent.marked_for_removal:
                return reject("new parent is removed")
            if account.parent is new_parent:
                return True

            old_parent = account.parent
            old_parent.remove_child(account)
            new_parent.add_child(account)
            if not self._dao.get_account_dao().update_account(account):
                new_parent.remove_child(account)
                old_parent.add_child(account)
                return reject("persistence failed")

            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY, account=account)
            return True

    def modify_account(
        self, template: Account, account: Account, parent: Account | None = None
    ) -> bool:
        """
        Copy the editable properties of ``template`` onto ``account``.

        The type changes only between mutable types and the currency only
        while the account has no transactions.  ``parent`` (or the
        template's parent) re-parents the account when it differs.
        """
        require(template, "template", "modify_account")
        require(account, "account", "modify_account")
        with self._mutation("modify_account"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY_FAILED, reason, account=account
                )

            if not self._is_stored_locked(account):
                return reject("account is not stored")
            if template.placeholder and account.get_transaction_count() > 0:
                return reject("an account with transactions cannot become a placeholder")

            new_parent = parent or template.parent
            if new_parent is not None and new_parent is not account.parent:
                if not self.move_account(account, new_parent):
                    return False

            account.name = template.name
            account.description = template.description
            account.notes = template.notes
            account.account_number = template.account_number
            account.bank_id = template.bank_id
            account.account_code = template.account_code
            account.locked = template.locked
            account.placeholder = template.placeholder
            account.visible = template.visible
            account.excluded_from_budget = template.excluded_from_budget

            new_type = template.account_type
            if new_type is not None and new_type is not account.account_type:
                if account.account_type is not None and account.account_type.mutable and new_type.mutable:
                    account._set_account_type(new_type)
                else:
                    logger.warning(
                        "account_type_change_skipped",
                        extra={"account_id": str(account.uuid), "requested": new_type.name},
                    )

            new_currency = template.currency_node
            if new_currency is not None and new_currency != account.currency_node:
                if account.get_transaction_count() == 0:
                    account._set_currency_node(new_currency)
                else:
                    logger.warning(
                        "account_currency_change_skipped",
                        extra={"account_id": str(account.uuid), "requested": new_currency.symbol},
                    )

            if account.placeholder:
                self._purge_budget_goals(account)

            if not self._dao.get_account_dao().update_account(account):
                return reject("persistence failed")

            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY, account=account)
            return True

    def _update_account_field(self, account: Account, operation: str, apply: Callable[[], None]) -> bool:
        require(account, "account", operation)
        with self._mutation(operation):
            if not self._is_stored_locked(account):
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_MODIFY_FAILED,
                    "account is not stored",
                    account=account,
                )
            apply()
            if not self._dao.get_account_dao().update_account(account):
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_MODIFY_FAILED,
                    "persistence failed",
                    account=account,
                )
            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY, account=account)
            return True

    def set_account_code(self, account: Account, code: int) -> bool:
        return self._update_account_field(
            account, "set_account_code", lambda: setattr(account, "account_code", code)
        )

    def set_account_number(self, account: Account, number: str) -> bool:
        return self._update_account_field(
            account, "set_account_number", lambda: setattr(account, "account_number", number)
        )

    def set_account_locked(self, account: Account, locked: bool) -> bool:
        return self._update_account_field(
            account, "set_account_locked", lambda: setattr(account, "locked", locked)
        )

    def set_account_placeholder(self, account: Account, placeholder: bool) -> bool:
        require(account, "account", "set_account_placeholder")
        with self._mutation("set_account_placeholder"):
            if placeholder and account.get_transaction_count() > 0:
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_MODIFY_FAILED,
                    "an account with transactions cannot become a placeholder",
                    account=account,
                )
            if placeholder:
                self._purge_budget_goals(account)
            return self._update_account_field(
                account, "set_account_placeholder", lambda: setattr(account, "placeholder", placeholder)
            )

    def set_account_attribute(self, account: Account, key: str, value: str | None) -> bool:
        """Set (or with ``None`` remove) a string attribute on ``account``."""
        require(account, "account", "set_account_attribute")
        with self._mutation("set_account_attribute"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_MODIFY_FAILED, reason, account=account
                )

            if value is not None and len(value) > MAX_ATTRIBUTE_LENGTH:
                return reject(f"attribute value longer than {MAX_ATTRIBUTE_LENGTH}")
            previous = account.get_attribute(key)
            account._set_attribute(key, value)
            if not self._dao.get_account_dao().update_account(account):
                account._set_attribute(key, previous)
                return reject("persistence failed")

            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_ATTRIBUTE_MODIFY, account=account)
            return True

    def get_account_attribute(self, account: Account, key: str) -> str | None:
        with self._reading():
            return account.get_attribute(key)

    def toggle_account_visibility(self, account: Account) -> bool:
        require(account, "account", "toggle_account_visibility")
        with self._mutation("toggle_account_visibility"):
            account.visible = not account.visible
            if not self._dao.get_account_dao().update_account(account):
                account.visible = not account.visible
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_VISIBILITY_CHANGE_FAILED,
                    "persistence failed",
                    account=account,
                )
            self._post(MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_VISIBILITY_CHANGE, account=account)
            return True

    def add_account_security(self, account: Account, node: SecurityNode) -> bool:
        require(account, "account", "add_account_security")
        require(node, "node", "add_account_security")
        with self._mutation("add_account_security"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_SECURITY_ADD_FAILED,
                    reason,
                    account=account,
                    commodity=node,
                )

            if not self._is_stored_locked(node):
                return reject("security is not stored")
            if not account.add_security(node):
                return reject("account already holds the security")
            if not self._dao.get_account_dao().update_account(account):
                account.remove_security(node)
                return reject("persistence failed")

            self._post(
                MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_SECURITY_ADD, account=account, commodity=node
            )
            return True

    def remove_account_security(self, account: Account, node: SecurityNode) -> bool:
        require(account, "account", "remove_account_security")
        require(node, "node", "remove_account_security")
        with self._mutation("remove_account_security"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.ACCOUNT,
                    ChannelEvent.ACCOUNT_SECURITY_REMOVE_FAILED,
                    reason,
                    account=account,
                    commodity=node,
                )

            if node in account.get_used_securities():
                return reject("security is used by the account's transactions")
            if not account.remove_security(node):
                return reject("account does not hold the security")
            if not self._dao.get_account_dao().update_account(account):
                account.add_security(node)
                return reject("persistence failed")

            self._post(
                MessageChannel.ACCOUNT, ChannelEvent.ACCOUNT_SECURITY_REMOVE, account=account, commodity=node
            )
            return True

    def update_account_securities(self, account: Account, nodes: Iterable[SecurityNode]) -> bool:
        """Make ``account`` hold exactly ``nodes``; True when every change succeeded."""
        require(account, "account", "update_account_securities")
        wanted = set(nodes)
        with self._mutation("update_account_securities"):
            held = set(account.get_securities())
            results = [self.add_account_security(account, n) for n in sorted(wanted - held)]
            results += [self.remove_account_security(account, n) for n in sorted(held - wanted)]
            return all(results)

    def _purge_budget_goals(self, account: Account) -> None:
        budget_dao = self._dao.get_budget_dao()
        for budget in budget_dao.get_budgets():
            goal = budget._remove_budget_goal(account)
            if goal is not None:
                self._move_object_to_trash(goal)
                budget_dao.update(budget)

    def _is_stored_locked(self, obj: StoredObject) -> bool:
        found = self._dao.get_object_by_uuid(type(obj), obj.uuid)
        return found is not None and not found.marked_for_removal

    # -- account accessors -------------------------------------------------

    def get_root_account(self) -> RootAccount:
        with self._reading():
            return self._dao.get_account_dao().get_root_account()

    def get_account_list(self) -> list[Account]:
        """Every account except the root, sorted by name."""
        with self._reading():
            return sorted(
                a for a in self._dao.get_account_dao().get_account_list()
                if not isinstance(a, RootAccount)
            )

    def get_account_by_uuid(self, uuid: UUID) -> Account | None:
        with self._reading():
            account = self._dao.get_account_dao().get_account_by_uuid(uuid)
            if account is None or account.marked_for_removal:
                return None
            return account

    def get_account_by_name(self, name: str) -> Account | None:
        for account in self.get_account_list():
            if account.name == name:
                return account
        return None

    def get_accounts_by_type(self, account_type: AccountType) -> list[Account]:
        return [a for a in self.get_account_list() if a.account_type is account_type]

    def get_income_account_list(self) -> list[Account]:
        return [a for a in self.get_account_list() if a.member_of(AccountGroup.INCOME)]

    def get_expense_account_list(self) -> list[Account]:
        return [a for a in self.get_account_list() if a.member_of(AccountGroup.EXPENSE)]

    def get_investment_account_list(self) -> list[Account]:
        return [a for a in self.get_account_list() if a.is_investment()]

    def format_account_path(self, account: Account) -> str:
        return account.get_path_name(self.get_account_separator())

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _transaction_problems(self, transaction: Transaction) -> list[str]:
        problems: list[str] = []

        for account in transaction.get_accounts():
            if account.locked:
                problems.append(f"account {account.name!r} is locked")
            if account.placeholder:
                problems.append(f"account {account.name!r} is a placeholder")

        if transaction.marked_for_removal:
            problems.append("transaction is marked for removal")
        if self._dao.get_object_by_uuid(StoredObject, transaction.uuid) is not None:
            problems.append("transaction is already stored")
        if transaction.size() == 0:
            problems.append("transaction has no entries")

        for entry in transaction.entries:
            if entry.has_null_field():
                problems.append("entry has a null account, amount or tag")
                continue
            if entry.is_multi_currency():
                if entry.credit_amount * entry.debit_amount > ZERO:
                    problems.append("multi-currency entry amounts have the same sign")
            elif entry.credit_amount != -entry.debit_amount:
                problems.append("entry credit and debit do not offset")

        transaction_type = transaction.transaction_type
        if transaction_type is TransactionType.SPLITENTRY and transaction.get_common_account() is None:
            problems.append("split transaction has no common account")
        if transaction_type is TransactionType.INVALID:
            problems.append("transaction type is invalid")

        if isinstance(transaction, InvestmentTransaction):
            problems.extend(validate_investment_transaction(transaction))
            account = transaction.investment_account
            node = transaction.security_node
            if account is not None and node is not None and not account.contains_security(node):
                problems.append(f"account {account.name!r} does not hold {node.symbol}")

        return problems

    def is_transaction_valid(self, transaction: Transaction) -> bool:
        require(transaction, "transaction", "is_transaction_valid")
        with self._reading():
            problems = self._transaction_problems(transaction)
        if problems:
            logger.warning(
                "transaction_invalid",
                extra={"transaction_id": str(transaction.uuid), "problems": problems},
            )
        return not problems

    def _reject_transaction(self, transaction: Transaction, event: ChannelEvent, reason: str) -> bool:
        accounts = transaction.get_accounts()
        logger.warning(
            "operation_rejected",
            extra={"event": event.name, "reason": reason, "transaction_id": str(transaction.uuid)},
        )
        if not accounts:
            self._post(MessageChannel.TRANSACTION, event, transaction=transaction)
        for account in accounts:
            self._post(MessageChannel.TRANSACTION, event, transaction=transaction, account=account)
        return False

    def add_transaction(self, transaction: Transaction) -> bool:
        require(transaction, "transaction", "add_transaction")
        with self._mutation("add_transaction"):
            problems = self._transaction_problems(transaction)
            if problems:
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_ADD_FAILED, "; ".join(problems)
                )
            if not self._dao.get_transaction_dao().add_transaction(transaction):
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_ADD_FAILED, "persistence failed"
                )

            accounts = transaction.get_accounts()
            for account in accounts:
                account.add_transaction(transaction)

            self._record_implied_exchange_rates(transaction)

            for account in accounts:
                self._post(
                    MessageChannel.TRANSACTION,
                    ChannelEvent.TRANSACTION_ADD,
                    transaction=transaction,
                    account=account,
                )
            logger.info(
                "transaction_added",
                extra={
                    "transaction_id": str(transaction.uuid),
                    "type": transaction.transaction_type.name,
                    "entries": transaction.size(),
                },
            )
            return True

    def _record_implied_exchange_rates(self, transaction: Transaction) -> None:
        commodity_dao = self._dao.get_commodity_dao()
        for entry in transaction.entries:
            if not entry.is_multi_currency():
                continue
            if entry.credit_amount == ZERO or entry.debit_amount == ZERO:
                continue
            base = entry.credit_account.currency_node
            exchange = entry.debit_account.currency_node
            rate_node = commodity_dao.get_exchange_rate_node(base, exchange)
            if rate_node is None or rate_node.get_rate(transaction.date) == ZERO:
                rate = divide(abs(entry.debit_amount), abs(entry.credit_amount))
                self.set_exchange_rate(base, exchange, rate, transaction.date)

    def remove_transaction(self, transaction: Transaction) -> bool:
        require(transaction, "transaction", "remove_transaction")
        with self._mutation("remove_transaction"):
            if transaction.are_accounts_locked():
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_REMOVE_FAILED, "an account is locked"
                )
            if not self._is_stored_locked(transaction):
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_REMOVE_FAILED, "transaction is not stored"
                )

            accounts = transaction.get_accounts()
            for account in accounts:
                account.remove_transaction(transaction)
            transaction.marked_for_removal = True
            self._dao.get_transaction_dao().remove_transaction(transaction)
            self._move_object_to_trash(transaction)

            for account in accounts:
                self._post(
                    MessageChannel.TRANSACTION,
                    ChannelEvent.TRANSACTION_REMOVE,
                    transaction=transaction,
                    account=account,
                )
            logger.info("transaction_removed", extra={"transaction_id": str(transaction.uuid)})
            return True

    def set_transaction_reconciled(
        self, transaction: Transaction, account: Account, state: ReconciledState
    ) -> bool:
        """Update the reconciled state of ``account``'s side of ``transaction`` in place."""
        require(transaction, "transaction", "set_transaction_reconciled")
        require(account, "account", "set_transaction_reconciled")
        require(state, "state", "set_transaction_reconciled")
        with self._mutation("set_transaction_reconciled"):
            if transaction.are_accounts_locked():
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_MODIFY_FAILED, "an account is locked"
                )
            if not self._is_stored_locked(transaction):
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_MODIFY_FAILED, "transaction is not stored"
                )

            previous = [(e, e.credit_reconciled, e.debit_reconciled) for e in transaction.entries]
            transaction.set_reconciled(account, state)

            if self.settings.ledger.auto_reconcile_income_expense and not (
                account.member_of(AccountGroup.INCOME) or account.member_of(AccountGroup.EXPENSE)
            ):
                for other in transaction.get_accounts():
                    if other is not account and (
                        other.member_of(AccountGroup.INCOME) or other.member_of(AccountGroup.EXPENSE)
                    ):
                        transaction.set_reconciled(other, state)

            if not self._dao.get_transaction_dao().update_transaction(transaction):
                for entry, credit_state, debit_state in previous:
                    entry.credit_reconciled = credit_state
                    entry.debit_reconciled = debit_state
                return self._reject_transaction(
                    transaction, ChannelEvent.TRANSACTION_MODIFY_FAILED, "persistence failed"
                )

            accounts = transaction.get_accounts()
            for each in accounts:
                each.clear_cached_balances()
            for each in accounts:
                self._post(
                    MessageChannel.TRANSACTION,
                    ChannelEvent.TRANSACTION_MODIFY,
                    transaction=transaction,
                    account=each,
                )
            return True

    def get_transactions(self) -> list[Transaction]:
        with self._reading():
            return sorted(self._dao.get_transaction_dao().get_transactions())

    def get_transactions_with_tags(self, tags: Iterable[Tag]) -> list[Transaction]:
        wanted = set(tags)
        return [t for t in self.get_transactions() if t.tags & wanted]

    def get_transaction_number_list(self) -> list[str]:
        with self._reading():
            return list(self.get_config().transaction_numbers)

    def set_transaction_number_list(self, numbers: list[str]) -> bool:
        return self._update_config(
            "set_transaction_number_list",
            lambda config: setattr(config, "transaction_numbers", list(numbers)),
        )

    # ------------------------------------------------------------------
    # Commodities
    # ------------------------------------------------------------------

    def is_commodity_node_valid(self, node: CommodityNode) -> bool:
        problems = []
        if node.uuid is None:
            problems.append("missing uuid")
        if not node.symbol:
            problems.append("missing symbol")
        if node.scale < 0:
            problems.append("negative scale")
        if isinstance(node, SecurityNode) and node.reported_currency is None:
            problems.append("security has no reported currency")
        with self._reading():
            if node.uuid is not None and self._dao.get_object_by_uuid(StoredObject, node.uuid):
                problems.append("uuid already stored")
        if problems:
            logger.warning(
                "commodity_invalid", extra={"symbol": node.symbol, "problems": problems}
            )
        return not problems

    def _symbol_in_use(self, symbol: str, exclude: CommodityNode | None = None) -> bool:
        commodity_dao = self._dao.get_commodity_dao()
        for existing in (commodity_dao.get_currency_by_symbol(symbol), commodity_dao.get_security_by_symbol(symbol)):
            if existing is not None and existing is not exclude:
                return True
        return False

    def add_currency(self, node: CurrencyNode) -> bool:
        require(node, "node", "add_currency")
        return self._add_commodity(node, ChannelEvent.CURRENCY_ADD, ChannelEvent.CURRENCY_ADD_FAILED)

    def add_security(self, node: SecurityNode) -> bool:
        require(node, "node", "add_security")
        return self._add_commodity(node, ChannelEvent.SECURITY_ADD, ChannelEvent.SECURITY_ADD_FAILED)

    def _add_commodity(self, node: CommodityNode, success: ChannelEvent, failure: ChannelEvent) -> bool:
        with self._mutation("add_commodity"):
            if not self.is_commodity_node_valid(node):
                return self._reject(MessageChannel.COMMODITY, failure, "invalid commodity", commodity=node)
            if self._symbol_in_use(node.symbol):
                return self._reject(MessageChannel.COMMODITY, failure, "duplicate symbol", commodity=node)
            if not self._dao.get_commodity_dao().add_commodity(node):
                return self._reject(MessageChannel.COMMODITY, failure, "persistence failed", commodity=node)
            self._post(MessageChannel.COMMODITY, success, commodity=node)
            logger.info("commodity_added", extra={"symbol": node.symbol, "kind": type(node).__name__})
            return True

    def _is_commodity_in_use(self, node: CommodityNode) -> bool:
        accounts = self._dao.get_account_dao().get_account_list()
        for account in accounts:
            if account.marked_for_removal:
                continue
            if account.currency_node == node:
                return True
            if isinstance(node, SecurityNode) and account.contains_security(node):
                return True
        if isinstance(node, CurrencyNode):
            if node == self.get_config().default_currency:
                return True
            for security in self._dao.get_commodity_dao().get_securities():
                if security.reported_currency == node:
                    return True
        else:
            for transaction in self._dao.get_transaction_dao().get_transactions():
                if isinstance(transaction, InvestmentTransaction) and transaction.security_node == node:
                    return True
        return False

    def remove_commodity(self, node: CommodityNode) -> bool:
        require(node, "node", "remove_commodity")
        is_security = isinstance(node, SecurityNode)
        success = ChannelEvent.SECURITY_REMOVE if is_security else ChannelEvent.CURRENCY_REMOVE
        failure = ChannelEvent.SECURITY_REMOVE_FAILED if is_security else ChannelEvent.CURRENCY_REMOVE_FAILED

        with self._mutation("remove_commodity"):
            if not self._is_stored_locked(node):
                return self._reject(MessageChannel.COMMODITY, failure, "commodity is not stored", commodity=node)
            if self._is_commodity_in_use(node):
                return self._reject(MessageChannel.COMMODITY, failure, "commodity is in use", commodity=node)

            commodity_dao = self._dao.get_commodity_dao()
            if is_security:
                for history in node.history:
                    node.remove_history_node(history.date)
                    self._move_object_to_trash(history)
                commodity_dao.update_commodity_node(node)
            else:
                self._remove_obsolete_exchange_rates(node)

            self._move_object_to_trash(node)
            self._post(MessageChannel.COMMODITY, success, commodity=node)
            logger.info("commodity_removed", extra={"symbol": node.symbol})
            return True

    def _remove_obsolete_exchange_rates(self, node: CurrencyNode) -> None:
        commodity_dao = self._dao.get_commodity_dao()
        rate_ids = {
            build_exchange_rate_id(node, other)
            for other in commodity_dao.get_currencies()
            if other != node
        }
        for rate in commodity_dao.get_exchange_rates():
            if rate.rate_id in rate_ids:
                for history in rate.history:
                    rate.remove_history_node(history)
                    self._move_object_to_trash(history)
                self._move_object_to_trash(rate)

    def update_commodity(self, node: CommodityNode, template: CommodityNode) -> bool:
        require(node, "node", "update_commodity")
        require(template, "template", "update_commodity")
        if node is template:
            raise SameCommodityError(node.symbol)

        is_security = isinstance(node, SecurityNode)
        success = ChannelEvent.SECURITY_MODIFY if is_security else ChannelEvent.CURRENCY_MODIFY
        failure = ChannelEvent.SECURITY_MODIFY_FAILED if is_security else ChannelEvent.CURRENCY_MODIFY_FAILED

        with self._mutation("update_commodity"):
            if type(node) is not type(template):
                return self._reject(MessageChannel.COMMODITY, failure, "commodity class mismatch", commodity=node)
            if not self._is_stored_locked(node):
                return self._reject(MessageChannel.COMMODITY, failure, "commodity is not stored", commodity=node)
            if not template.symbol or template.scale < 0:
                return self._reject(MessageChannel.COMMODITY, failure, "invalid template", commodity=node)
            if template.symbol != node.symbol and self._symbol_in_use(template.symbol, exclude=node):
                return self._reject(MessageChannel.COMMODITY, failure, "duplicate symbol", commodity=node)

            node.copy_fields_from(template)
            if not self._dao.get_commodity_dao().update_commodity_node(node):
                return self._reject(MessageChannel.COMMODITY, failure, "persistence failed", commodity=node)
            if is_security:
                self._clear_holder_caches(node)

            self._post(MessageChannel.COMMODITY, success, commodity=node)
            return True

    def _clear_holder_caches(self, node: SecurityNode | None = None) -> None:
        for account in self._dao.get_account_dao().get_account_list():
            if account.is_investment() and (node is None or account.contains_security(node)):
                account.clear_cached_balances()

    # -- security history --------------------------------------------------

    def add_security_history(self, node: SecurityNode, history: SecurityHistoryNode) -> bool:
        """Record a price; an existing point for the same date is replaced."""
        require(node, "node", "add_security_history")
        require(history, "history", "add_security_history")
        with self._mutation("add_security_history"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.COMMODITY, ChannelEvent.SECURITY_HISTORY_ADD_FAILED, reason, commodity=node
                )

            if not self._is_stored_locked(node):
                return reject("security is not stored")

            commodity_dao = self._dao.get_commodity_dao()
            existing = node.get_history_node(history.date)
            if existing is not None:
                node.remove_history_node(history.date)
                commodity_dao.remove_security_history(node, existing)
                self._move_object_to_trash(existing)

            if not node.add_history_node(history):
                return reject("history date already present")
            if not commodity_dao.add_security_history(node, history):
                node.remove_history_node(history.date)
                return reject("persistence failed")

            self._clear_holder_caches(node)
            self._post(MessageChannel.COMMODITY, ChannelEvent.SECURITY_HISTORY_ADD, commodity=node)
            return True

    def remove_security_history(self, node: SecurityNode, on_date: date) -> bool:
        require(node, "node", "remove_security_history")
        require(on_date, "on_date", "remove_security_history")
        with self._mutation("remove_security_history"):
            removed = node.remove_history_node(on_date)
            if removed is None:
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.SECURITY_HISTORY_REMOVE_FAILED,
                    "no history for date",
                    commodity=node,
                )
            self._dao.get_commodity_dao().remove_security_history(node, removed)
            self._move_object_to_trash(removed)
            self._clear_holder_caches(node)
            self._post(MessageChannel.COMMODITY, ChannelEvent.SECURITY_HISTORY_REMOVE, commodity=node)
            return True

    def add_security_history_event(self, node: SecurityNode, event: SecurityHistoryEvent) -> bool:
        require(node, "node", "add_security_history_event")
        require(event, "event", "add_security_history_event")
        with self._mutation("add_security_history_event"):
            if not node.add_history_event(event):
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.SECURITY_HISTORY_EVENT_ADD_FAILED,
                    "event already recorded",
                    commodity=node,
                )
            if not self._dao.get_commodity_dao().update_commodity_node(node):
                node.remove_history_event(event)
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.SECURITY_HISTORY_EVENT_ADD_FAILED,
                    "persistence failed",
                    commodity=node,
                )
            self._post(MessageChannel.COMMODITY, ChannelEvent.SECURITY_HISTORY_EVENT_ADD, commodity=node)
            return True

    def remove_security_history_event(self, node: SecurityNode, event: SecurityHistoryEvent) -> bool:
        require(node, "node", "remove_security_history_event")
        require(event, "event", "remove_security_history_event")
        with self._mutation("remove_security_history_event"):
            if not node.remove_history_event(event):
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.SECURITY_HISTORY_EVENT_REMOVE_FAILED,
                    "event not recorded",
                    commodity=node,
                )
            self._dao.get_commodity_dao().update_commodity_node(node)
            self._post(MessageChannel.COMMODITY, ChannelEvent.SECURITY_HISTORY_EVENT_REMOVE, commodity=node)
            return True

    # -- exchange rates ----------------------------------------------------

    def set_exchange_rate(
        self,
        base: CurrencyNode,
        exchange: CurrencyNode,
        rate: Decimal,
        on_date: date | None = None,
    ) -> bool:
        """
        Record that one unit of ``base`` buys ``rate`` units of ``exchange``.

        The rate is stored in the canonical direction of the pair, inverted
        when ``base`` is not the pair's first symbol.
        """
        require(base, "base", "set_exchange_rate")
        require(exchange, "exchange", "set_exchange_rate")
        require(rate, "rate", "set_exchange_rate")
        if rate <= ZERO:
            raise InvalidExchangeRateError(base.symbol, exchange.symbol, rate)
        if base == exchange:
            return True

        on_date = on_date or self.clock.today()
        with self._mutation("set_exchange_rate"):
            commodity_dao = self._dao.get_commodity_dao()
            rate_id = build_exchange_rate_id(base, exchange)
            exchange_rate = commodity_dao.get_exchange_rate_by_id(rate_id)

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.EXCHANGE_RATE_ADD_FAILED,
                    reason,
                    exchange_rate=exchange_rate,
                )

            if exchange_rate is None:
                exchange_rate = ExchangeRate(rate_id)
                if not commodity_dao.add_exchange_rate(exchange_rate):
                    return reject("persistence failed")

            existing = exchange_rate.get_history_node(on_date)
            if existing is not None:
                exchange_rate.remove_history_node(existing)
                commodity_dao.remove_exchange_rate_history(exchange_rate, existing)
                self._move_object_to_trash(existing)

            stored = rate if is_canonical_direction(base, exchange) else invert(rate)
            history = ExchangeRateHistoryNode(on_date, stored)
            exchange_rate.add_history_node(history)
            if not commodity_dao.add_exchange_rate_history(exchange_rate, history):
                exchange_rate.remove_history_node(history)
                return reject("persistence failed")

            self._clear_holder_caches()
            self._post(
                MessageChannel.COMMODITY,
                ChannelEvent.EXCHANGE_RATE_ADD,
                exchange_rate=exchange_rate,
                date=on_date,
            )
            logger.info(
                "exchange_rate_set",
                extra={"rate_id": rate_id, "date": on_date, "stored_rate": stored},
            )
            return True

    def remove_exchange_rate_history(
        self, exchange_rate: ExchangeRate, history: ExchangeRateHistoryNode
    ) -> bool:
        require(exchange_rate, "exchange_rate", "remove_exchange_rate_history")
        require(history, "history", "remove_exchange_rate_history")
        with self._mutation("remove_exchange_rate_history"):
            if not exchange_rate.remove_history_node(history):
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.EXCHANGE_RATE_REMOVE_FAILED,
                    "history not part of the rate",
                    exchange_rate=exchange_rate,
                )
            if not self._dao.get_commodity_dao().remove_exchange_rate_history(exchange_rate, history):
                exchange_rate.add_history_node(history)
                return self._reject(
                    MessageChannel.COMMODITY,
                    ChannelEvent.EXCHANGE_RATE_REMOVE_FAILED,
                    "persistence failed",
                    exchange_rate=exchange_rate,
                )
            self._move_object_to_trash(history)
            self._clear_holder_caches()
            self._post(
                MessageChannel.COMMODITY,
                ChannelEvent.EXCHANGE_RATE_REMOVE,
                exchange_rate=exchange_rate,
                date=history.date,
            )
            return True

    # -- commodity accessors -----------------------------------------------

    def get_exchange_rate(self, base: CurrencyNode, exchange: CurrencyNode) -> ExchangeRate | None:
        with self._reading():
            return self._dao.get_commodity_dao().get_exchange_rate_node(base, exchange)

    def get_exchange_rates(self) -> list[ExchangeRate]:
        with self._reading():
            return sorted(self._dao.get_commodity_dao().get_exchange_rates(), key=lambda r: r.rate_id)

    def get_currencies(self) -> list[CurrencyNode]:
        with self._reading():
            return sorted(self._dao.get_commodity_dao().get_currencies())

    def get_securities(self) -> list[SecurityNode]:
        with self._reading():
            return sorted(self._dao.get_commodity_dao().get_securities())

    def get_currency(self, symbol: str) -> CurrencyNode | None:
        with self._reading():
            return self._dao.get_commodity_dao().get_currency_by_symbol(symbol)

    def get_security(self, symbol: str) -> SecurityNode | None:
        with self._reading():
            return self._dao.get_commodity_dao().get_security_by_symbol(symbol)

    def get_default_currency(self) -> CurrencyNode:
        return self.get_config().default_currency

    def set_default_currency(self, node: CurrencyNode) -> bool:
        """Make ``node`` the ledger currency and re-denominate the root account."""
        require(node, "node", "set_default_currency")
        with self._mutation("set_default_currency"):
            if not self._is_stored_locked(node):
                return self._reject(
                    MessageChannel.CONFIG,
                    ChannelEvent.CONFIG_MODIFY_FAILED,
                    "currency is not stored",
                    config=self.get_config(),
                )
            root = self._dao.get_account_dao().get_root_account()
            root._set_currency_node(node)
            self._dao.get_account_dao().update_account(root)
            return self._update_config(
                "set_default_currency", lambda config: setattr(config, "default_currency", node)
            )

    def get_market_price(self, node: SecurityNode, base_currency: CurrencyNode, on_date: date) -> Decimal:
        """Price of one share of ``node`` on ``on_date`` expressed in ``base_currency``."""
        require(node, "node", "get_market_price")
        require(base_currency, "base_currency", "get_market_price")
        with self._reading():
            transactions: set[Transaction] = set()
            for account in self._dao.get_account_dao().get_account_list():
                if account.is_investment() and account.contains_security(node):
                    transactions.update(account.get_sorted_transactions())
            return market_price.get_market_price(sorted(transactions), node, base_currency, on_date)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def add_budget(self, budget: Budget) -> bool:
        require(budget, "budget", "add_budget")
        with self._mutation("add_budget"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.BUDGET, ChannelEvent.BUDGET_ADD_FAILED, reason, budget=budget
                )

            if not budget.name.strip():
                return reject("budget name is blank")
            if self._dao.get_object_by_uuid(StoredObject, budget.uuid) is not None:
                return reject("budget already stored")
            if not self._dao.get_budget_dao().add(budget):
                return reject("persistence failed")

            self._post(MessageChannel.BUDGET, ChannelEvent.BUDGET_ADD, budget=budget)
            return True

    def remove_budget(self, budget: Budget) -> bool:
        require(budget, "budget", "remove_budget")
        with self._mutation("remove_budget"):
            if not self._is_stored_locked(budget):
                return self._reject(
                    MessageChannel.BUDGET, ChannelEvent.BUDGET_REMOVE_FAILED, "budget is not stored", budget=budget
                )
            self._move_object_to_trash(budget)
            self._post(MessageChannel.BUDGET, ChannelEvent.BUDGET_REMOVE, budget=budget)
            return True

    def update_budget(self, budget: Budget, template: Budget | None = None) -> bool:
        require(budget, "budget", "update_budget")
        with self._mutation("update_budget"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.BUDGET, ChannelEvent.BUDGET_UPDATE_FAILED, reason, budget=budget
                )

            if not self._is_stored_locked(budget):
                return reject("budget is not stored")
            if template is not None:
                if not template.name.strip():
                    return reject("budget name is blank")
                budget.copy_fields_from(template)
            if not self._dao.get_budget_dao().update(budget):
                return reject("persistence failed")

            self._post(MessageChannel.BUDGET, ChannelEvent.BUDGET_UPDATE, budget=budget)
            return True

    def update_budget_goals(self, budget: Budget, account: Account, goal: BudgetGoal) -> bool:
        """Replace ``account``'s goal in ``budget``; the old goal goes to the trash."""
        require(budget, "budget", "update_budget_goals")
        require(account, "account", "update_budget_goals")
        require(goal, "goal", "update_budget_goals")
        with self._mutation("update_budget_goals"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.BUDGET,
                    ChannelEvent.BUDGET_GOAL_UPDATE_FAILED,
                    reason,
                    budget=budget,
                    account=account,
                    budget_goal=goal,
                )

            if not self._is_stored_locked(budget):
                return reject("budget is not stored")
            if account.placeholder:
                return reject("placeholder accounts have no goals")

            previous = budget._set_budget_goal(account, goal)
            if not self._dao.get_budget_dao().update(budget):
                if previous is None:
                    budget._remove_budget_goal(account)
                else:
                    budget._set_budget_goal(account, previous)
                return reject("persistence failed")
            if previous is not None and previous is not goal:
                self._move_object_to_trash(previous)

            self._post(
                MessageChannel.BUDGET,
                ChannelEvent.BUDGET_GOAL_UPDATE,
                budget=budget,
                account=account,
                budget_goal=goal,
            )
            return True

    def get_budget_list(self) -> list[Budget]:
        with self._reading():
            return sorted(self._dao.get_budget_dao().get_budgets(), key=lambda b: (b.name.lower(), str(b.uuid)))

    def get_budget_result(self, budget: Budget, account: Account, year: int, index: int) -> BudgetResult:
        with self._reading():
            return compute_budget_result(budget, account, year, index)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def add_reminder(self, reminder: Reminder) -> bool:
        require(reminder, "reminder", "add_reminder")
        with self._mutation("add_reminder"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.REMINDER, ChannelEvent.REMINDER_ADD_FAILED, reason, reminder=reminder
                )

            if not reminder.description or not reminder.description.strip():
                return reject("reminder description is blank")
            if self._dao.get_object_by_uuid(StoredObject, reminder.uuid) is not None:
                return reject("reminder already stored")
            if not self._dao.get_reminder_dao().add_reminder(reminder):
                return reject("persistence failed")

            self._post(MessageChannel.REMINDER, ChannelEvent.REMINDER_ADD, reminder=reminder)
            return True

    def remove_reminder(self, reminder: Reminder) -> bool:
        require(reminder, "reminder", "remove_reminder")
        with self._mutation("remove_reminder"):
            if not self._is_stored_locked(reminder):
                return self._reject(
                    MessageChannel.REMINDER,
                    ChannelEvent.REMINDER_REMOVE_FAILED,
                    "reminder is not stored",
                    reminder=reminder,
                )
            if reminder.transaction is not None:
                self._move_object_to_trash(reminder.transaction)
            self._move_object_to_trash(reminder)
            self._post(MessageChannel.REMINDER, ChannelEvent.REMINDER_REMOVE, reminder=reminder)
            return True

    def update_reminder(self, reminder: Reminder, template: Reminder | None = None) -> bool:
        require(reminder, "reminder", "update_reminder")
        with self._mutation("update_reminder"):

            def reject(reason: str) -> bool:
                return self._reject(
                    MessageChannel.REMINDER, ChannelEvent.REMINDER_UPDATE_FAILED, reason, reminder=reminder
                )

            if not self._is_stored_locked(reminder):
                return reject("reminder is not stored")
            if template is not None:
                if not template.description or not template.description.strip():
                    return reject("reminder description is blank")
                reminder.copy_fields_from(template)
            if not self._dao.get_reminder_dao().update_reminder(reminder):
                return reject("persistence failed")

            self._post(MessageChannel.REMINDER, ChannelEvent.REMINDER_UPDATE, reminder=reminder)
            return True

    def get_reminders(self) -> list[Reminder]:
        with self._reading():
            return sorted(
                self._dao.get_reminder_dao().get_reminder_list(),
                key=lambda r: (r.description.lower(), str(r.uuid)),
            )

    def get_pending_reminders(self, today: date | None = None) -> list[PendingReminder]:
        """
        Occurrences of enabled reminders that are due on or before today.

        Auto-create reminders fall due ``days_advance`` days early.
        """
        today = today or self.clock.today()
        pending: list[PendingReminder] = []
        for reminder in self.get_reminders():
            if not reminder.enabled:
                continue
            for day in reminder.iter_dates():
                trigger = day
                if reminder.auto_create:
                    trigger = day - timedelta(days=reminder.days_advance)
                if trigger > today:
                    break
                pending.append(PendingReminder(day, reminder, approved=reminder.auto_create))
        return sorted(pending)

    def process_pending_reminders(self, pending: Iterable[PendingReminder]) -> int:
        """Create transactions for the approved reminders; returns how many were created."""
        created = 0
        with self._mutation("process_pending_reminders"):
            for item in sorted(pending):
                if not item.approved:
                    continue
                reminder = item.reminder
                if reminder.transaction is None:
                    logger.warning(
                        "reminder_without_transaction", extra={"reminder_id": str(reminder.uuid)}
                    )
                    continue
                transaction = reminder.transaction.clone()
                transaction.date = item.commit_date
                if self.add_transaction(transaction):
                    created += 1
                    reminder.set_last_date(item.commit_date)
                    self.update_reminder(reminder)
        return created

    def create_default_reminder(self, transaction: Transaction, account: Account) -> Reminder:
        """A monthly reminder repeating ``transaction``, starting one month after it."""
        require(transaction, "transaction", "create_default_reminder")
        reminder = Reminder(
            transaction.payee or transaction.memo or "Reminder",
            ReminderType.MONTHLY,
            add_months(transaction.date, 1),
        )
        reminder.notes = transaction.memo
        reminder.account = account
        reminder.transaction = transaction.clone()
        return reminder

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def add_tag(self, tag: Tag) -> bool:
        require(tag, "tag", "add_tag")
        with self._mutation("add_tag"):

            def reject(reason: str) -> bool:
                return self._reject(MessageChannel.TAG, ChannelEvent.TAG_ADD_FAILED, reason, tag=tag)

            if not tag.name.strip():
                return reject("tag name is blank")
            if any(t.name == tag.name for t in self._dao.get_tag_dao().get_tags()):
                return reject("duplicate tag name")
            if self._dao.get_object_by_uuid(StoredObject, tag.uuid) is not None:
                return reject("tag already stored")
            if not self._dao.get_tag_dao().add(tag):
                return reject("persistence failed")

            self._post(MessageChannel.TAG, ChannelEvent.TAG_ADD, tag=tag)
            return True

    def update_tag(self, tag: Tag, template: Tag | None = None) -> bool:
        require(tag, "tag", "update_tag")
        with self._mutation("update_tag"):

            def reject(reason: str) -> bool:
                return self._reject(MessageChannel.TAG, ChannelEvent.TAG_MODIFY_FAILED, reason, tag=tag)

            if not self._is_stored_locked(tag):
                return reject("tag is not stored")
            if template is not None:
                if not template.name.strip():
                    return reject("tag name is blank")
                tag.copy_fields_from(template)
            if not self._dao.get_tag_dao().update(tag):
                return reject("persistence failed")

            self._post(MessageChannel.TAG, ChannelEvent.TAG_MODIFY, tag=tag)
            return True

    def remove_tag(self, tag: Tag) -> bool:
        require(tag, "tag", "remove_tag")
        with self._mutation("remove_tag"):
            if not self._is_stored_locked(tag):
                return self._reject(MessageChannel.TAG, ChannelEvent.TAG_REMOVE_FAILED, "tag is not stored", tag=tag)
            if tag in self._tags_in_use():
                return self._reject(MessageChannel.TAG, ChannelEvent.TAG_REMOVE_FAILED, "tag is in use", tag=tag)
            self._move_object_to_trash(tag)
            self._post(MessageChannel.TAG, ChannelEvent.TAG_REMOVE, tag=tag)
            return True

    def _tags_in_use(self) -> set[Tag]:
        used: set[Tag] = set()
        for transaction in self._dao.get_transaction_dao().get_transactions():
            used.update(transaction.tags)
        return used

    def get_tags(self) -> list[Tag]:
        with self._reading():
            return sorted(self._dao.get_tag_dao().get_tags(), key=lambda t: (t.name.lower(), str(t.uuid)))

    def get_tags_in_use(self) -> list[Tag]:
        with self._reading():
            return sorted(self._tags_in_use(), key=lambda t: (t.name.lower(), str(t.uuid)))

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> Config:
        with self._reading():
            return self._dao.get_config_dao().get_default_config()

    def _update_config(self, operation: str, apply: Callable[[Config], None]) -> bool:
        with self._mutation(operation):
            config = self._dao.get_config_dao().get_default_config()
            apply(config)
            if not self._dao.get_config_dao().update(config):
                return self._reject(
                    MessageChannel.CONFIG, ChannelEvent.CONFIG_MODIFY_FAILED, "persistence failed", config=config
                )
            self._post(MessageChannel.CONFIG, ChannelEvent.CONFIG_MODIFY, config=config)
            return True

    def get_account_separator(self) -> str:
        return self.get_config().account_separator

    def set_account_separator(self, separator: str) -> bool:
        if not separator:
            with self._mutation("set_account_separator"):
                return self._reject(
                    MessageChannel.CONFIG,
                    ChannelEvent.CONFIG_MODIFY_FAILED,
                    "separator is empty",
                    config=self.get_config(),
                )
        return self._update_config(
            "set_account_separator", lambda config: setattr(config, "account_separator", separator)
        )

    def get_preference(self, key: str) -> str | None:
        return self.get_config().get_preference(key)

    def set_preference(self, key: str, value: str | None) -> bool:
        require(key, "key", "set_preference")
        return self._update_config("set_preference", lambda config: config.set_preference(key, value))

    def get_bool_preference(self, key: str, default: bool = False) -> bool:
        value = self.get_preference(key)
        if value is None:
            return default
        return value.lower() == _TRUE

    def set_bool_preference(self, key: str, value: bool) -> bool:
        return self.set_preference(key, _TRUE if value else "false")

    def set_create_backups(self, create: bool) -> bool:
        return self._update_config(
            "set_create_backups", lambda config: setattr(config, "create_backups", create)
        )

    def set_retained_backup_limit(self, limit: int) -> bool:
        return self._update_config(
            "set_retained_backup_limit", lambda config: setattr(config, "retained_backup_limit", max(0, limit))
        )

    def set_remove_old_backups(self, remove: bool) -> bool:
        return self._update_config(
            "set_remove_old_backups", lambda config: setattr(config, "remove_old_backups", remove)
        )

    def get_last_securities_update(self) -> datetime | None:
        return self.get_config().last_securities_update

    def set_last_securities_update(self, when: datetime) -> bool:
        return self._update_config(
            "set_last_securities_update", lambda config: setattr(config, "last_securities_update", when)
        )

    # ------------------------------------------------------------------
    # Background services and lifecycle
    # ------------------------------------------------------------------

    @property
    def background_counter(self) -> BackgroundCounter:
        return self._counter

    def start_background_services(self) -> None:
        self._check_open()
        if self._executor is not None:
            return
        executor = ScheduledExecutor(f"{self.name}-background")
        trash = self.settings.trash
        executor.schedule_with_fixed_delay(
            BackgroundCallable(self.empty_trash, self._counter, name="trash-sweep"),
            trash.sweep_initial_delay_seconds,
            trash.sweep_period_seconds,
            name="trash-sweep",
        )

        if self.settings.updates.update_on_startup and should_automatic_update_occur(
            self.get_last_securities_update(), self.clock.now()
        ):
            delay = self.settings.background.scheduled_delay_seconds
            if self.security_update_client is not None:
                executor.schedule(
                    BackgroundCallable(self.update_securities, self._counter, name="security-update"),
                    delay,
                    name="security-update",
                )
            if self.exchange_rate_update_client is not None:
                executor.schedule(
                    BackgroundCallable(self.update_exchange_rates, self._counter, name="rate-update"),
                    delay,
                    name="rate-update",
                )

        self._executor = executor
        logger.info("background_services_started", extra={"engine": self.name})

    def update_securities(self) -> bool:
        """Run the security update client over every quoted security."""
        if self.security_update_client is None:
            return False
        callables = build_security_update_callables(self, self.security_update_client, self._counter)
        monitor = SecuritiesUpdateMonitor(callables, self.settings.updates.max_errors)
        self._update_monitor = monitor
        try:
            ok = monitor()
        finally:
            self._update_monitor = None
        if ok:
            self.set_last_securities_update(self.clock.now())
        return ok

    def update_exchange_rates(self) -> bool:
        if self.exchange_rate_update_client is None:
            return False
        ok = self.exchange_rate_update_client.update_rates(self)
        if not ok:
            logger.warning("exchange_rate_update_unsuccessful")
        return ok

    def stop_background_services(self) -> None:
        executor = self._executor
        if executor is None:
            return
        monitor = self._update_monitor
        if monitor is not None:
            monitor.cancel_all()

        timeout = self.settings.background.forced_shutdown_timeout_seconds
        executor.shutdown()
        if not executor.await_termination(timeout):
            executor.shutdown_now()
            if not executor.await_termination(timeout):
                logger.error("background_tasks_did_not_terminate", extra={"engine": self.name})
        self._executor = None
        logger.info("background_services_stopped", extra={"engine": self.name})

    def shutdown(self) -> None:
        if self._closed:
            return
        self._bus.fire_event(Message(MessageChannel.SYSTEM, ChannelEvent.FILE_CLOSING, self.uuid))
        self.stop_background_services()
        with self._data_lock.write_lock():
            self._closed = True
            self._dao.shutdown()
        logger.info("engine_shutdown", extra={"engine": self.name})

    def __repr__(self) -> str:
        return f"Engine({self.name!r}, closed={self._closed})"
