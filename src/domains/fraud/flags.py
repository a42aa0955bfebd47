"""Behavior flags derived from aggregated signals.

Each flag is computed independently; only the evaluator combines them.
"""

from .config import FlagSettings, FraudConfig, default_config
from .models import (
    BehaviorFlags,
    BehaviorProfile,
    DeviceFingerprint,
    LocationSample,
    SignalBundle,
    TrustStatus,
)
from .similarity import is_handle_near_miss
from .validation import split_identifier


def is_new_contact(bundle: SignalBundle) -> bool:
    return bundle.contact is None or bundle.contact.trust_status == TrustStatus.NEW


def in_high_risk_window(hour: int, settings: FlagSettings) -> bool:
    start, end = settings.high_risk_start_hour, settings.high_risk_end_hour
    if start <= end:
        return start <= hour <= end
    # Window wraps midnight, e.g. 22 -> 4
    return hour >= start or hour <= end


def is_time_anomaly(hour: int, profile: BehaviorProfile | None, settings: FlagSettings) -> bool:
    if not in_high_risk_window(hour, settings):
        return False
    # No profile means no evidence this window is normal for the user
    if profile is None:
        return True
    return hour not in profile.typical_hours


def is_suspicious_identifier(identifier: str, settings: FlagSettings) -> bool:
    local_part, handle = split_identifier(identifier)
    if local_part:
        digits = sum(ch.isdigit() for ch in local_part)
        if digits / len(local_part) >= settings.numeric_ratio_threshold:
            return True
    return is_handle_near_miss(handle, settings.provider_handles)


def has_suspicious_keywords(identifier: str, note: str | None, settings: FlagSettings) -> bool:
    haystacks = [identifier.lower()]
    if note:
        haystacks.append(note.lower())
    return any(kw in text for kw in settings.keywords for text in haystacks)


def evaluate_flags(
    identifier: str,
    bundle: SignalBundle,
    local_hour: int,
    config: FraudConfig | None = None,
    note: str | None = None,
    device: DeviceFingerprint | None = None,
    location: LocationSample | None = None,
) -> BehaviorFlags:
    """Compute the five behavior flags.

    ``device`` and ``location`` are accepted for parity with the signal
    providers; the current flag set reads neither.
    """
    settings = (config or default_config).flags
    return BehaviorFlags(
        new_contact=is_new_contact(bundle),
        time_anomaly=is_time_anomaly(local_hour, bundle.profile, settings),
        suspicious_upi=is_suspicious_identifier(identifier, settings),
        suspicious_keywords=has_suspicious_keywords(identifier, note, settings),
        is_blacklisted=bundle.blacklist is not None,
    )
