"""
Centralized constants for the client layer.

Change job ids, storage keys or endpoint paths here instead of scattering literals
across services. Intervals that each environment may tune come from config.settings.
"""

# Durable storage key for the bearer token (absence means signed out)
AUTH_TOKEN_KEY = "auth_token"

# Scheduler job ids. Notification poll ids are suffixed with the user id.
NOTIFICATION_POLL_JOB_PREFIX = "notification_poll"
DASHBOARD_REFETCH_JOB_PREFIX = "dashboard_refetch"
TABLE_SEARCH_JOB_PREFIX = "table_search"

# How many rows the admin dashboard keeps in its "recent" lists
RECENT_ITEMS_LIMIT = 10

# Commission rate assumed when a payment row does not carry one
DEFAULT_COMMISSION_RATE = 0.15

# --- Endpoints (relative to settings.api_url) ---

AUTH_REGISTER = "/auth/register"
AUTH_LOGIN = "/auth/login"
AUTH_LOGOUT = "/auth/logout"
AUTH_PROFILE = "/auth/profile"
AUTH_FORGOT_PASSWORD = "/auth/forgot-password"
AUTH_RESET_PASSWORD = "/auth/reset-password"

NOTIFICATIONS = "/notifications"
NOTIFICATIONS_UNREAD_COUNT = "/notifications/unread-count"
NOTIFICATIONS_MARK_ALL_READ = "/notifications/mark-all-read"

ADMIN_DATA = "/admin/data"
ADMIN_WORKERS_PAGINATION = "/admin/workers-pagination"
ADMIN_BOOKINGS = "/admin/bookings"
ADMIN_PAYMENTS = "/admin/payments"
WORKER_PAYMENT_SUMMARY = "/worker-payment-summary"

CUSTOMER_DATA = "/customer-data"
WORKER_DATA = "/worker-data"

PAYMENTS_CREATE_CHECKOUT = "/payments/create-checkout"
PAYMENTS_COMPLETE = "/payments/complete"
PAYMENTS_STATUS = "/payments/status"

SEND_WELCOME_EMAIL = "/send-welcome-email"

ADMIN_ACTIVATION_REQUESTS = "/admin/account-activation-requests"
ADMIN_WORKER_ACCOUNT_STATUS = "/admin/worker-account-status"
ADMIN_DEACTIVATED_WORKERS = "/admin/deactivated-workers"
ADMIN_DEACTIVATE_WORKER = "/admin/deactivate-worker"
ADMIN_REACTIVATE_WORKER = "/admin/reactivate-worker"
ADMIN_PERIODIC_DEACTIVATION_CHECK = "/admin/run-periodic-deactivation-check"

ACTIVATION_REQUESTS = "/account-activation-requests"
WORKER_ACCOUNT_STATUS = "/worker-account-status"
WORKER_CAN_PERFORM_ACTION = "/worker-can-perform-action"
WORKER_UNIQUE_CUSTOMERS_COUNT = "/worker-unique-customers-count"
WORKER_CATEGORY_INFO = "/worker-category-info"
WORKER_DEACTIVATION_CRITERIA = "/worker-deactivation-criteria"
