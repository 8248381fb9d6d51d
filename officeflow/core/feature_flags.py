import os


def _as_bool(val: str | None, default: bool = True) -> bool:
    if val is None:
        return default
    v = val.strip().lower()
    return v in {"1", "true", "yes", "on"}


class Features:
    notifications: bool
    compliance_alerts: bool
    backup: bool

    def __init__(self) -> None:
        self.notifications = _as_bool(os.getenv("FEATURE_NOTIFICATIONS"), True)
        self.compliance_alerts = _as_bool(os.getenv("FEATURE_COMPLIANCE_ALERTS"), True)
        self.backup = _as_bool(os.getenv("FEATURE_BACKUP"), True)


features = Features()
