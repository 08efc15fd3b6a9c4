"""TimeTrust — validation, anomaly detection, trust scoring and repair of time entries."""

__version__ = "0.1.0"
