"""
Hand-off links to third-party navigation apps, for drivers who prefer them
over the in-app turn-by-turn view.
"""

from routing.geo import GeoPoint

EXTERNAL_APPS = {
    "google": "https://www.google.com/maps/dir/?api=1&destination={lat},{lon}",
    "apple": "http://maps.apple.com/?daddr={lat},{lon}",
    "waze": "https://waze.com/ul?ll={lat},{lon}&navigate=yes",
}


def external_navigation_url(destination: GeoPoint, app: str = "google") -> str:
    # unknown apps fall back to google maps
    template = EXTERNAL_APPS.get(app, EXTERNAL_APPS["google"])
    return template.format(lat=destination.latitude, lon=destination.longitude)
