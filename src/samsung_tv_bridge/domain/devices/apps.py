"""Applications that can be launched by name from a configured input."""

from typing import Dict, Optional

# Display name -> Tizen application id
KNOWN_APPS: Dict[str, str] = {
    "YouTube": "111299001912",
    "Netflix": "11101200001",
    "Spotify": "3201606009684",
    "Plex": "3201512006963",
    "PrimeVideo": "3201512006785",
    "AppleTV": "3201807016597",
    "DisneyPlus": "3201901017640",
    "Internet": "org.tizen.browser",
}


def lookup_app(name: str) -> Optional[str]:
    """Return the application id for a known app name (case-insensitive), or None."""
    wanted = name.strip().lower()
    for app_name, app_id in KNOWN_APPS.items():
        if app_name.lower() == wanted:
            return app_id
    return None
