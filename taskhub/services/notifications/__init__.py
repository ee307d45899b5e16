"""
Notifications: the polled feed for the signed-in user, plus templates for marketplace events.
"""
from taskhub.services.notifications.feed import NotificationFeed, parse_notifications, poll_job_id
from taskhub.services.notifications.templates import (
    notify_admin_action,
    notify_booking_status_changed,
    notify_new_booking,
    notify_new_message,
    notify_new_offer,
    notify_new_profile_created,
    notify_new_review,
    notify_offer_response,
    notify_profile_verification_status,
    notify_service_request_created,
    notify_service_request_status_changed,
)

__all__ = [
    "NotificationFeed",
    "parse_notifications",
    "poll_job_id",
    "notify_admin_action",
    "notify_booking_status_changed",
    "notify_new_booking",
    "notify_new_message",
    "notify_new_offer",
    "notify_new_profile_created",
    "notify_new_review",
    "notify_offer_response",
    "notify_profile_verification_status",
    "notify_service_request_created",
    "notify_service_request_status_changed",
]
