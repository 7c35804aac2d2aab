# File: const.py
"""Constants for the EcoEcho integration.

This file centralizes configuration keys, defaults, storage keys, estimation
factors, service names and event names for consistency across the integration.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
# Integration Name
ECOECHO_TITLE = "EcoEcho"

# Integration Domain
DOMAIN = "ecoecho"

# Logger
LOGGER = logging.getLogger(__package__)

# No entity platforms; the integration exposes services only
PLATFORMS: list[str] = []

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "ecoecho_data"
STORAGE_VERSION = 1

# Update Interval (minutes)
DEFAULT_UPDATE_INTERVAL = 5

# ------------------------------------------------------------------------------------------------
# Configuration Keys
# ------------------------------------------------------------------------------------------------
CONF_API_URL = "api_url"
CONF_API_TOKEN = "api_token"
CONF_UPDATE_INTERVAL = "update_interval"

CONFIG_FLOW_STEP_USER = "user"
OPTIONS_FLOW_STEP_INIT = "init"

# ------------------------------------------------------------------------------------------------
# Local Persistent Store: base keys and namespacing
# ------------------------------------------------------------------------------------------------
STORAGE_KEY_SCAN_HISTORY = "eco_echo_scan_history"
STORAGE_KEY_USER_STATS = "eco_echo_user_stats"
STORAGE_KEY_USER_PROGRESS = "eco_echo_user_progress"
STORAGE_KEY_POINTS = "eco_echo_points"
STORAGE_KEY_USER_OBJECT_STATS = "eco_echo_user_object_stats"

# Identity record is global to the device, never namespaced
STORAGE_KEY_IDENTITY = "user"

ANONYMOUS_NAMESPACE = "anonymous"

# Schema version written into every persisted blob
DATA_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION_LEGACY = 1
SCHEMA_VERSION_CURRENT = 2

# ------------------------------------------------------------------------------------------------
# Data keys: ScanRecord
# ------------------------------------------------------------------------------------------------
DATA_SCAN_ID = "id"
DATA_SCAN_TIMESTAMP = "timestamp"
DATA_SCAN_ITEM_NAME = "item_name"
DATA_SCAN_CATEGORY = "category"
DATA_SCAN_IS_RECYCLABLE = "is_recyclable"
DATA_SCAN_ECO_SCORE = "eco_score"
DATA_SCAN_CONFIDENCE = "confidence"
DATA_SCAN_DISPOSAL_METHOD = "disposal_method"
DATA_SCAN_IMAGE_REF = "image_ref"

# ------------------------------------------------------------------------------------------------
# Data keys: LocalAggregateStats
# ------------------------------------------------------------------------------------------------
DATA_STATS_TOTAL_ITEMS_SCANNED = "total_items_scanned"
DATA_STATS_RECYCLABLE_ITEMS_COUNT = "recyclable_items_count"
DATA_STATS_TOTAL_ECO_SCORE = "total_eco_score"
DATA_STATS_AVERAGE_ECO_SCORE = "average_eco_score"
DATA_STATS_SCANS_BY_CATEGORY = "scans_by_category"
DATA_STATS_SCANS_BY_MATERIAL = "scans_by_material"
DATA_STATS_LAST_UPDATED = "last_updated"

# ------------------------------------------------------------------------------------------------
# Data keys: ServerUserStats / ReconciledStats
# ------------------------------------------------------------------------------------------------
DATA_SERVER_TOTAL_ITEMS = "total_items"
DATA_SERVER_TOTAL_WEIGHT = "total_weight"
DATA_SERVER_TOTAL_CARBON_SAVED = "total_carbon_saved"
DATA_SERVER_RECYCLABLE_ITEMS = "recyclable_items"
DATA_SERVER_CATEGORY_BREAKDOWN = "category_breakdown"
DATA_SERVER_LAST_UPDATED = "last_updated"

DATA_RECONCILED_TREES_EQUIVALENT = "trees_equivalent"

# ------------------------------------------------------------------------------------------------
# Data keys: UserProgress
# ------------------------------------------------------------------------------------------------
DATA_PROGRESS_SCAN_COUNT = "scan_count"
DATA_PROGRESS_RECYCLABLE_COUNT = "recyclable_count"
DATA_PROGRESS_TOTAL_ECO_SCORE = "total_eco_score"
DATA_PROGRESS_CATEGORIES_SCANNED = "categories_scanned"
DATA_PROGRESS_DAILY_STREAK = "daily_streak"
DATA_PROGRESS_LAST_SCAN_DATE = "last_scan_date"
DATA_PROGRESS_SHARE_COUNT = "share_count"
DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS = "unlocked_achievements"

# ------------------------------------------------------------------------------------------------
# Data keys: PointsLedger
# ------------------------------------------------------------------------------------------------
DATA_POINTS_TOTAL = "total"
DATA_POINTS_EARNED = "earned"
DATA_LEDGER_POINTS = "points"
DATA_LEDGER_ACHIEVEMENT_ID = "achievement_id"
DATA_LEDGER_TIMESTAMP = "timestamp"

# ------------------------------------------------------------------------------------------------
# Data keys: Identity
# ------------------------------------------------------------------------------------------------
DATA_IDENTITY_USER_ID = "user_id"
DATA_IDENTITY_TOKEN = "token"

# ------------------------------------------------------------------------------------------------
# Scan categories
# ------------------------------------------------------------------------------------------------
CATEGORY_PLASTIC = "Plastic"
CATEGORY_PAPER = "Paper"
CATEGORY_GLASS = "Glass"
CATEGORY_METAL = "Metal"
CATEGORY_ORGANIC = "Organic"
CATEGORY_ELECTRONIC = "Electronic"
CATEGORY_OTHER = "Other"
CATEGORY_COMPOSTABLE = "Compostable"

SCAN_CATEGORIES = [
    CATEGORY_PLASTIC,
    CATEGORY_PAPER,
    CATEGORY_GLASS,
    CATEGORY_METAL,
    CATEGORY_ORGANIC,
    CATEGORY_ELECTRONIC,
    CATEGORY_OTHER,
    CATEGORY_COMPOSTABLE,
]

# ------------------------------------------------------------------------------------------------
# Defaults and limits
# ------------------------------------------------------------------------------------------------
DEFAULT_CATEGORY = CATEGORY_OTHER
DEFAULT_DISPOSAL_METHOD = "Unknown"
DISPOSAL_RECYCLED = "Recycled"
DISPOSAL_COMPOSTED = "Composted"
DISPOSAL_LANDFILL = "Landfill"
DEFAULT_HISTORY_LIMIT = 10

HISTORY_RETENTION_LIMIT = 100
ECO_SCORE_MIN = 0
ECO_SCORE_MAX = 100

# Refresh throttle per user session (seconds)
REFRESH_THROTTLE_SECONDS = 10

# Server request timeout (seconds)
API_TIMEOUT_SECONDS = 10

# Points per level
LEVEL_POINTS_STEP = 1000

# ------------------------------------------------------------------------------------------------
# Weight / impact estimation
# ------------------------------------------------------------------------------------------------
# Above this many kg per item a reported weight is assumed to be grams
WEIGHT_MAX_KG_PER_ITEM = 10
GRAMS_PER_KILOGRAM = 1000
ESTIMATED_KG_PER_ITEM = 0.1

CO2_KG_PER_RECYCLABLE_ITEM = 0.5
CO2_CATEGORY_BONUS_KG = {
    CATEGORY_PLASTIC: 0.3,
    CATEGORY_PAPER: 0.2,
}
CO2_KG_ABSORBED_PER_TREE = 20

DATA_FLOAT_PRECISION = 1

# ------------------------------------------------------------------------------------------------
# Achievement catalog tags
# ------------------------------------------------------------------------------------------------
ACHIEVEMENT_CATEGORY_MILESTONE = "milestone"
ACHIEVEMENT_CATEGORY_RECYCLING = "recycling"
ACHIEVEMENT_CATEGORY_SCORE = "score"
ACHIEVEMENT_CATEGORY_DIVERSITY = "diversity"
ACHIEVEMENT_CATEGORY_STREAK = "streak"
ACHIEVEMENT_CATEGORY_SPECIAL = "special"
ACHIEVEMENT_CATEGORY_SOCIAL = "social"

# ------------------------------------------------------------------------------------------------
# Server API
# ------------------------------------------------------------------------------------------------
API_PATH_USER_STATS = "/stats/user"

API_FIELD_SUCCESS = "success"
API_FIELD_DATA = "data"
API_FIELD_TOTAL_ITEMS = "totalItems"
API_FIELD_TOTAL_WEIGHT = "totalWeight"
API_FIELD_TOTAL_CARBON_SAVED = "totalCarbonSaved"
API_FIELD_RECYCLABLE_ITEMS = "recyclableItems"
API_FIELD_CATEGORY_BREAKDOWN = "categoryBreakdown"
API_FIELD_LAST_UPDATED = "lastUpdated"

# ------------------------------------------------------------------------------------------------
# Classifier response fields
# ------------------------------------------------------------------------------------------------
CLASSIFIER_FIELD_CLASS_NAME = "class_name"
CLASSIFIER_FIELD_CATEGORY = "category"
CLASSIFIER_FIELD_CONFIDENCE = "confidence"
CLASSIFIER_FIELD_RECYCLABLE = "recyclable"
CLASSIFIER_FIELD_ECO_SCORE = "eco_score"
CLASSIFIER_FIELD_DISPOSAL_INSTRUCTIONS = "disposal_instructions"

# ------------------------------------------------------------------------------------------------
# Events
# ------------------------------------------------------------------------------------------------
# Dispatcher signal suffixes (instance scoped)
SIGNAL_SUFFIX_USER_CHANGED = "user_changed"

# Bus events
EVENT_ACHIEVEMENT_UNLOCKED = "ecoecho_achievement_unlocked"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_RECORD_SCAN = "record_scan"
SERVICE_RECORD_SHARE = "record_share"
SERVICE_REFRESH_STATS = "refresh_stats"
SERVICE_LOGIN = "login"
SERVICE_LOGOUT = "logout"
SERVICE_GET_PROGRESS = "get_progress"
SERVICE_GET_ACHIEVEMENT_PROGRESS = "get_achievement_progress"
SERVICE_GET_SCAN_HISTORY = "get_scan_history"
SERVICE_CLEAR_HISTORY = "clear_history"

# Service fields
FIELD_ITEM_NAME = "item_name"
FIELD_CATEGORY = "category"
FIELD_IS_RECYCLABLE = "is_recyclable"
FIELD_ECO_SCORE = "eco_score"
FIELD_CONFIDENCE = "confidence"
FIELD_DISPOSAL_METHOD = "disposal_method"
FIELD_IMAGE_REF = "image_ref"
FIELD_USER_ID = "user_id"
FIELD_TOKEN = "token"
FIELD_ACHIEVEMENT_ID = "achievement_id"
FIELD_LIMIT = "limit"
FIELD_FORCE = "force"

# Service response keys
ATTR_SCAN = "scan"
ATTR_NEWLY_UNLOCKED = "newly_unlocked"
ATTR_STATS = "stats"
ATTR_PROGRESS = "progress"
ATTR_POINTS = "points"
ATTR_LEVEL = "level"
ATTR_NEXT_LEVEL_POINTS = "next_level_points"
ATTR_ACHIEVEMENT_ID = "achievement_id"
ATTR_HISTORY = "history"
ATTR_USER_ID = "user_id"
ATTR_UNLOCKED = "unlocked"

# ------------------------------------------------------------------------------------------------
# Translation keys
# ------------------------------------------------------------------------------------------------
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_INVALID_URL = "invalid_url"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry_found"

MSG_NO_ENTRY_FOUND = "No EcoEcho entry found"
