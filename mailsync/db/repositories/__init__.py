"""DB repositories: sync functions, tenant id passed explicitly to every call."""

from mailsync.db.repositories.account_repo import (
    complete_sync as account_complete_sync,
    get_account as account_get,
    get_encrypted_refresh_token as account_get_encrypted_refresh_token,
    link_account as account_link,
    list_accounts_due as account_list_due,
)
from mailsync.db.repositories.message_repo import (
    count_messages as message_count,
    count_threads as thread_count,
    get_message as message_get,
    get_thread as thread_get,
    ingest_message as message_ingest,
    list_pending_analysis as message_list_pending_analysis,
    save_analysis as message_save_analysis,
)

__all__ = [
    "account_link",
    "account_get",
    "account_get_encrypted_refresh_token",
    "account_list_due",
    "account_complete_sync",
    "message_ingest",
    "message_get",
    "message_count",
    "thread_get",
    "thread_count",
    "message_list_pending_analysis",
    "message_save_analysis",
]
