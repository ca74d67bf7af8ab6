"""Channels, events and property keys carried by ledger messages."""

from enum import Enum


class MessageChannel(Enum):
    ACCOUNT = "account"
    BUDGET = "budget"
    COMMODITY = "commodity"
    CONFIG = "config"
    REMINDER = "reminder"
    SYSTEM = "system"
    TAG = "tag"
    TRANSACTION = "transaction"


class MessageProperty(Enum):
    ACCOUNT = "account"
    BUDGET = "budget"
    BUDGET_GOAL = "budget_goal"
    COMMODITY = "commodity"
    CONFIG = "config"
    DATE = "date"
    EXCHANGE_RATE = "exchange_rate"
    REMINDER = "reminder"
    TAG = "tag"
    TRANSACTION = "transaction"


class ChannelEvent(Enum):
    """Every mutation has a success event and a ``_FAILED`` twin."""

    ACCOUNT_ADD = "account_add"
    ACCOUNT_ADD_FAILED = "account_add_failed"
    ACCOUNT_ATTRIBUTE_MODIFY = "account_attribute_modify"
    ACCOUNT_MODIFY = "account_modify"
    ACCOUNT_MODIFY_FAILED = "account_modify_failed"
    ACCOUNT_REMOVE = "account_remove"
    ACCOUNT_REMOVE_FAILED = "account_remove_failed"
    ACCOUNT_SECURITY_ADD = "account_security_add"
    ACCOUNT_SECURITY_ADD_FAILED = "account_security_add_failed"
    ACCOUNT_SECURITY_REMOVE = "account_security_remove"
    ACCOUNT_SECURITY_REMOVE_FAILED = "account_security_remove_failed"
    ACCOUNT_VISIBILITY_CHANGE = "account_visibility_change"
    ACCOUNT_VISIBILITY_CHANGE_FAILED = "account_visibility_change_failed"

    BACKGROUND_PROCESS_STARTED = "background_process_started"
    BACKGROUND_PROCESS_STOPPED = "background_process_stopped"

    BUDGET_ADD = "budget_add"
    BUDGET_ADD_FAILED = "budget_add_failed"
    BUDGET_GOAL_UPDATE = "budget_goal_update"
    BUDGET_GOAL_UPDATE_FAILED = "budget_goal_update_failed"
    BUDGET_REMOVE = "budget_remove"
    BUDGET_REMOVE_FAILED = "budget_remove_failed"
    BUDGET_UPDATE = "budget_update"
    BUDGET_UPDATE_FAILED = "budget_update_failed"

    CONFIG_MODIFY = "config_modify"
    CONFIG_MODIFY_FAILED = "config_modify_failed"

    CURRENCY_ADD = "currency_add"
    CURRENCY_ADD_FAILED = "currency_add_failed"
    CURRENCY_MODIFY = "currency_modify"
    CURRENCY_MODIFY_FAILED = "currency_modify_failed"
    CURRENCY_REMOVE = "currency_remove"
    CURRENCY_REMOVE_FAILED = "currency_remove_failed"

    EXCHANGE_RATE_ADD = "exchange_rate_add"
    EXCHANGE_RATE_ADD_FAILED = "exchange_rate_add_failed"
    EXCHANGE_RATE_REMOVE = "exchange_rate_remove"
    EXCHANGE_RATE_REMOVE_FAILED = "exchange_rate_remove_failed"

    FILE_CLOSING = "file_closing"
    FILE_LOAD_SUCCESS = "file_load_success"

    REMINDER_ADD = "reminder_add"
    REMINDER_ADD_FAILED = "reminder_add_failed"
    REMINDER_REMOVE = "reminder_remove"
    REMINDER_REMOVE_FAILED = "reminder_remove_failed"
    REMINDER_UPDATE = "reminder_update"
    REMINDER_UPDATE_FAILED = "reminder_update_failed"

    SECURITY_ADD = "security_add"
    SECURITY_ADD_FAILED = "security_add_failed"
    SECURITY_HISTORY_ADD = "security_history_add"
    SECURITY_HISTORY_ADD_FAILED = "security_history_add_failed"
    SECURITY_HISTORY_EVENT_ADD = "security_history_event_add"
    SECURITY_HISTORY_EVENT_ADD_FAILED = "security_history_event_add_failed"
    SECURITY_HISTORY_EVENT_REMOVE = "security_history_event_remove"
    SECURITY_HISTORY_EVENT_REMOVE_FAILED = "security_history_event_remove_failed"
    SECURITY_HISTORY_REMOVE = "security_history_remove"
    SECURITY_HISTORY_REMOVE_FAILED = "security_history_remove_failed"
    SECURITY_MODIFY = "security_modify"
    SECURITY_MODIFY_FAILED = "security_modify_failed"
    SECURITY_REMOVE = "security_remove"
    SECURITY_REMOVE_FAILED = "security_remove_failed"

    TAG_ADD = "tag_add"
    TAG_ADD_FAILED = "tag_add_failed"
    TAG_MODIFY = "tag_modify"
    TAG_MODIFY_FAILED = "tag_modify_failed"
    TAG_REMOVE = "tag_remove"
    TAG_REMOVE_FAILED = "tag_remove_failed"

    TRANSACTION_ADD = "transaction_add"
    TRANSACTION_ADD_FAILED = "transaction_add_failed"
    TRANSACTION_MODIFY = "transaction_modify"
    TRANSACTION_MODIFY_FAILED = "transaction_modify_failed"
    TRANSACTION_REMOVE = "transaction_remove"
    TRANSACTION_REMOVE_FAILED = "transaction_remove_failed"

    @property
    def is_failure(self) -> bool:
        return self.name.endswith("_FAILED")
