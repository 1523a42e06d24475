"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from haversine import Unit


@dataclass
class MatchingConfig:
    """Settings for geo intersection.

    Attributes:
        intersect_milliseconds: Minimum overlap (ms) for raw samples
        intersect_milliseconds_with_cluster: Minimum overlap (ms) in cluster mode
        meter_radius: Default report radius when the feed omits one
        buffer_units: Distance unit for radii (haversine Unit value, e.g. 'm', 'km')
        intersect_with_clusters: Match against clustered history instead of raw samples
        sick_geometry_lat_index: Index of latitude in feed coordinates
        sick_geometry_long_index: Index of longitude in feed coordinates
    """
    intersect_milliseconds: int = 1
    intersect_milliseconds_with_cluster: int = 1
    meter_radius: float = 500.0
    buffer_units: str = "m"
    intersect_with_clusters: bool = False
    sick_geometry_lat_index: int = 1
    sick_geometry_long_index: int = 0

    @property
    def min_overlap_ms(self) -> int:
        """Threshold for the active matching mode."""
        if self.intersect_with_clusters:
            return self.intersect_milliseconds_with_cluster
        return self.intersect_milliseconds


@dataclass
class ThrottleConfig:
    """Minimum intervals between checks.

    Attributes:
        min_geo_fetch_interval_minutes: Skip geo checks younger than this
        min_ble_fetch_interval_minutes: Skip proximity checks younger than this
    """
    min_geo_fetch_interval_minutes: int = 60
    min_ble_fetch_interval_minutes: int = 60


@dataclass
class NotificationConfig:
    """Content of the exposure notification.

    Attributes:
        webhook_url: Endpoint that delivers the notification
        title: Notification title
        body: Notification body ({count} is replaced by the number of exposures)
        duration: How long the notification stays up
        unit: Unit of duration
    """
    webhook_url: str = ""
    title: str = "Possible exposure detected"
    body: str = "We found {count} possible exposure(s) in your history."
    duration: int = 10000
    unit: str = "ms"


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        fetch_interval_seconds: Period of the recurring check
        data_url: URL of the signed sick-report feed
        feed_signing_key: Shared key used to verify the feed signature
        proximity_enabled: Whether the proximity check runs at all
        matching: Geo intersection settings
        throttle: Minimum check intervals
        notification: Notification content and target
        firestore_database: Firestore database name (None for default)
        firestore_collection_prefix: Prefix for all Firestore collections
        cycle_lease_seconds: Lifetime of the single-writer lease held during a cycle
    """
    fetch_interval_seconds: int = 3600
    data_url: str = ""
    feed_signing_key: str = ""
    proximity_enabled: bool = True
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    firestore_database: str | None = None
    firestore_collection_prefix: str = "exposure_watch"
    cycle_lease_seconds: int = 600


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def _is_placeholder(value: str) -> bool:
    return not value or value.startswith("${")


def validate_matching(matching: MatchingConfig) -> list[ValidationError]:
    """Validate geo matching settings.

    Pure function.

    Args:
        matching: Matching configuration

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if matching.meter_radius <= 0:
        errors.append(ValidationError(
            field="matching.meter_radius",
            message=f"Default radius must be positive, got {matching.meter_radius}",
        ))

    for name in ("intersect_milliseconds", "intersect_milliseconds_with_cluster"):
        value = getattr(matching, name)
        if value < 0:
            errors.append(ValidationError(
                field=f"matching.{name}",
                message=f"Threshold must not be negative, got {value}",
            ))

    try:
        Unit(matching.buffer_units)
    except ValueError:
        errors.append(ValidationError(
            field="matching.buffer_units",
            message=f"Unknown distance unit '{matching.buffer_units}'",
        ))

    indices = (matching.sick_geometry_lat_index, matching.sick_geometry_long_index)
    if indices[0] == indices[1]:
        errors.append(ValidationError(
            field="matching",
            message="Latitude and longitude indices must differ",
        ))
    if any(i < 0 for i in indices):
        errors.append(ValidationError(
            field="matching",
            message=f"Coordinate indices must not be negative, got {indices}",
        ))

    return errors


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(validate_matching(config.matching))

    if config.fetch_interval_seconds <= 0:
        errors.append(ValidationError(
            field="fetch_interval_seconds",
            message=f"Interval must be positive, got {config.fetch_interval_seconds}",
        ))

    if config.cycle_lease_seconds <= 0:
        errors.append(ValidationError(
            field="cycle_lease_seconds",
            message=f"Lease lifetime must be positive, got {config.cycle_lease_seconds}",
        ))

    for name in ("min_geo_fetch_interval_minutes", "min_ble_fetch_interval_minutes"):
        value = getattr(config.throttle, name)
        if value < 0:
            errors.append(ValidationError(
                field=f"throttle.{name}",
                message=f"Interval must not be negative, got {value}",
            ))

    if _is_placeholder(config.data_url):
        errors.append(ValidationError(
            field="data_url",
            message="Feed URL not configured",
        ))

    if _is_placeholder(config.feed_signing_key):
        errors.append(ValidationError(
            field="feed_signing_key",
            message="Feed signing key not resolved (feed verification will fail)",
            severity="warning",
        ))

    if _is_placeholder(config.notification.webhook_url):
        errors.append(ValidationError(
            field="notification.webhook_url",
            message="Notification webhook not resolved (still contains placeholder)",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
