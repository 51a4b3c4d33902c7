"""Settings for the management API connection."""
from .settings import CvpSettings, load_settings, settings_from_dict

__all__ = ["CvpSettings", "load_settings", "settings_from_dict"]
