"""Application-wide constants."""

APP_NAME = "Restock"
APP_VERSION = "1.0.0"

# ── Storage keys ─────────────────────────────────────────────────
SENDER_PROFILE_KEY = "senderProfile"
SUPPLIERS_KEY = "suppliers"
PRODUCTS_KEY = "products"
SESSIONS_KEY = "sessions"
COMPANY_LINK_KEY = "company_link"
SNAPSHOT_CACHE_KEY = "snapshot_cache"

# ── Session statuses ─────────────────────────────────────────────
# Ordered: a session may only move to a status later in this list
SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_PENDING_EMAILS = "pendingEmails"
SESSION_STATUS_COMPLETED = "completed"

SESSION_STATUSES = [
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_PENDING_EMAILS,
    SESSION_STATUS_COMPLETED,
]

# ── Email drafting ───────────────────────────────────────────────
FALLBACK_STORE_PHRASE = "our store"
FALLBACK_SENDER_NAME = "Customer"
FALLBACK_SUPPLIER_GREETING = "there"

# Number of per-group reasons included in an aggregate error message
MAX_REASONS_IN_SUMMARY = 2
