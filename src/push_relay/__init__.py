"""push-relay — blockchain account activity to mobile push notifications."""

__version__ = "1.0.0"
