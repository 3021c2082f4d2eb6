"""
Core Constants

Centralized configuration values for the application.
"""

# Pagination defaults
PAGINATION = {
    "default_limit": 10,
    "max_limit": 100,
}

# Day windows used by the statistics layer
EXPIRY_WINDOWS = {
    "week": 7,
    "month": 30,
    "next_month": 60,
}
RETENTION_LOOKBACK_DAYS = 365
RENEWAL_LOOKBACK_DAYS = 180
RECENT_GROWTH_DAYS = 90

# Expiry warning levels (days before expiry, inclusive)
EXPIRY_WARNING_DAYS = {
    "critical": 7,
    "warning": 30,
    "info": 60,
}
EXPIRY_SUMMARY_HORIZON_DAYS = 90

# Result sizes
TOP_PROVIDERS_LIMIT = 5
TOP_TEMPLATES_LIMIT = 10
EXPIRING_DETAILS_LIMIT = 20

# Percentage change bounds
PERCENTAGE_CHANGE_MIN = -100
PERCENTAGE_CHANGE_MAX = 1000

# Cache keys
CACHE_KEYS = {
    "template_stats": "policy_template_stats",
    "detail_stats": "policy_detail_stats",
    "detail_generation": "policy_detail_stats:generation",
}

# Human-readable compatibility mode descriptions
COMPATIBILITY_MODE_DESCRIPTIONS = {
    "hybrid": "Hybrid mode: Using template system with old system fallback",
    "template": "Template mode: Using new PolicyTemplate/PolicyInstance system only",
    "legacy": "Legacy mode: Using old Policy system only",
}
MIGRATE_ON_READ_SUFFIX = " (with automatic migration on read)"
