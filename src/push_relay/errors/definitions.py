"""Boundary error definitions returned by the HTTP layer."""

from __future__ import annotations

from push_relay.errors.relay_errors import RelayError

# -- Validation ------------------------------------------------------------

ErrMissingDeviceToken = RelayError(
    "Device token is required", status_code=400, code="MISSING_DEVICE_TOKEN"
)
ErrMissingAddresses = RelayError(
    "Addresses array is required and must not be empty",
    status_code=400,
    code="MISSING_ADDRESSES",
)
ErrInvalidAddress = RelayError(
    "Invalid address format, expected shardus address",
    status_code=400,
    code="INVALID_ADDRESS",
)
ErrInvalidPushToken = RelayError(
    "Invalid Expo push token format", status_code=400, code="INVALID_EXPO_TOKEN"
)

# -- Not Found -------------------------------------------------------------

ErrSubscriptionNotFound = RelayError(
    "Subscription not found", status_code=404, code="SUBSCRIPTION_NOT_FOUND"
)

# -- Internal --------------------------------------------------------------

ErrContextNotReady = RelayError(
    "Relay context not initialized", status_code=503, code="SERVICE_UNAVAILABLE"
)
