DOMAIN = "sweetspots"
VERSION = "0.1.0"

# Platform ceiling on simultaneously monitored regions
MAX_MONITORED_REGIONS = 20

# Valid notification radius bounds (metres); spots outside are skipped, never clamped
MIN_REGION_RADIUS = 50
MAX_REGION_RADIUS = 50_000

# Notification throttle
DEFAULT_COOLDOWN_MINUTES = 120
NOTIFICATION_COOLDOWN = DEFAULT_COOLDOWN_MINUTES * 60  # seconds

# Movement (metres) since the last distance-based prioritisation that flags a re-sort
SIGNIFICANT_LOCATION_CHANGE = 1000

# Upper bound (seconds) on waiting for the permission-change callback after an upgrade request
PERMISSION_UPGRADE_TIMEOUT = 1.0

# Periodic synchronisation interval (seconds)
SYNC_INTERVAL = 300

# Persisted key-value storage
STORAGE_VERSION = 1
STORAGE_KEY_STATE = f"{DOMAIN}.state"
STORAGE_KEY_SPOTS = f"{DOMAIN}.spots"

KEY_MONITORED_SPOT_DETAILS = "monitored_spot_details"
KEY_RECENT_NOTIFICATIONS = "recent_notifications"
KEY_GEOFENCING_ENABLED = "geofencing_enabled"
KEY_GRANTED_LOCATION_ACCESS = "granted_location_access"

# Config entry fields
CONF_ENTRY_NAME = "entry_name"
CONF_TRACKED_ENTITY = "tracked_entity_id"
CONF_NOTIFY_SERVICE = "notify_service"
CONF_COOLDOWN_MINUTES = "cooldown_minutes"

# Notification texts
NOTIFICATION_TITLE = "SweetSpot Nearby!"
NOTIFICATION_BODY = "You're near {name}. Check it out!"
ALERT_TITLE = "Nearby SweetSpot!"
ALERT_BODY = "You're near {name}."
NOTIFICATION_ID_PREFIX = "geofence_"

# Bus event fired for foreground geofence alerts
EVENT_NEARBY_SPOT = f"{DOMAIN}_nearby_spot"

# Services
SERVICE_SYNCHRONIZE = "synchronize"
SERVICE_SAVE_SPOT = "save_spot"
SERVICE_DELETE_SPOT = "delete_spot"

# Bus event fired when the user taps "open spot" on a nearby-spot notification
EVENT_OPEN_SPOT = f"{DOMAIN}_open_spot"

# Companion app notification actions
EVENT_MOBILE_APP_NOTIFICATION_ACTION = "mobile_app_notification_action"
OPEN_SPOT_ACTION_PREFIX = "SWEETSPOTS_OPEN_SPOT_"
OPEN_SPOT_ACTION_TITLE = "Open spot"
