"""Event type constants for gitcontext."""

# Account store
ACCOUNTS_REPLACED = "accounts_replaced"
ACCOUNT_ADDED = "account_added"
ACCOUNT_UPDATED = "account_updated"
ACCOUNT_REMOVED = "account_removed"
ACTIVE_ACCOUNT_CHANGED = "active_account_changed"
ACCOUNT_ASSIGNED = "account_assigned"
ACCOUNT_UNASSIGNED = "account_unassigned"
ACCOUNT_ASSIGNMENTS_REPLACED = "account_assignments_replaced"
ACCOUNTS_LOADING = "accounts_loading"
ACCOUNTS_ERROR = "accounts_error"
ACCOUNTS_RESET = "accounts_reset"

# Profile store
PROFILES_REPLACED = "profiles_replaced"
PROFILE_ADDED = "profile_added"
PROFILE_UPDATED = "profile_updated"
PROFILE_REMOVED = "profile_removed"
ACTIVE_PROFILE_CHANGED = "active_profile_changed"
PROFILE_ASSIGNED = "profile_assigned"
PROFILE_UNASSIGNED = "profile_unassigned"
PROFILE_ASSIGNMENTS_REPLACED = "profile_assignments_replaced"
PROFILE_DEFAULT_ACCOUNT_CHANGED = "profile_default_account_changed"
CONNECTION_STATUS_CHANGED = "connection_status_changed"
