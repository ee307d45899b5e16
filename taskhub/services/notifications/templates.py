"""
Notification templates for marketplace events (new booking, offer response, ...).

Each notify_* builds the notification(s) for one event and hands them to `send`, usually
NotificationFeed.create_notification. Returns True when every send succeeded; events that
should not notify (status unchanged, offer still pending) return True without sending.
"""
import logging
from typing import Callable

from taskhub.schemas import CreateNotificationParams

logger = logging.getLogger(__name__)

Sender = Callable[[CreateNotificationParams], bool]

SERVICE_REQUEST_STATUS_TEXT = {
    "accepted": "accepted your service request for",
    "rejected": "rejected your service request for",
    "in_progress": "started working on your service request for",
    "completed": "completed your service request for",
}
BOOKING_STATUS_TEXT = {
    "confirmed": "confirmed",
    "in_progress": "started",
    "completed": "completed",
    "cancelled": "cancelled",
}
OFFER_RESPONSE_TEXT = {
    "accepted": "accepted your offer for",
    "rejected": "rejected your offer for",
}


def _send_all(send: Sender, notifications: list[CreateNotificationParams]) -> bool:
    results = [send(n) for n in notifications]
    return all(results)


def notify_new_profile_created(send: Sender, admin_ids: list[str], profile_id: str, user_type: str) -> bool:
    """Tell every admin a new profile is waiting for verification."""
    return _send_all(
        send,
        [
            CreateNotificationParams(
                user_id=admin_id,
                type="new_profile_created",
                title="New Profile Created",
                message=f"A new {user_type} profile has been created and needs verification",
                related_id=profile_id,
                related_type="profile",
            )
            for admin_id in admin_ids
        ],
    )


def notify_service_request_created(
    send: Sender, request_id: str, worker_id: str, customer_name: str, service_title: str
) -> bool:
    return send(
        CreateNotificationParams(
            user_id=worker_id,
            type="service_request_received",
            title="New Service Request",
            message=f"{customer_name} has sent you a service request for {service_title}",
            related_id=request_id,
            related_type="service_request",
        )
    )


def notify_service_request_status_changed(
    send: Sender,
    request_id: str,
    customer_id: str,
    worker_name: str,
    service_title: str,
    new_status: str,
    old_status: str,
) -> bool:
    if new_status == old_status:
        return True
    status_text = SERVICE_REQUEST_STATUS_TEXT.get(new_status, "updated your service request for")
    return send(
        CreateNotificationParams(
            user_id=customer_id,
            type="service_request_updated",
            title="Service Request Update",
            message=f"{worker_name} {status_text} {service_title}",
            related_id=request_id,
            related_type="service_request",
        )
    )


def notify_new_message(send: Sender, message_id: str, receiver_id: str, sender_name: str) -> bool:
    return send(
        CreateNotificationParams(
            user_id=receiver_id,
            type="new_message",
            title="New Message",
            message=f"You received a new message from {sender_name}",
            related_id=message_id,
            related_type="message",
        )
    )


def notify_new_offer(send: Sender, offer_id: str, customer_id: str, worker_name: str, service_title: str) -> bool:
    return send(
        CreateNotificationParams(
            user_id=customer_id,
            type="new_offer",
            title="New Offer Received",
            message=f"{worker_name} has sent you an offer for {service_title}",
            related_id=offer_id,
            related_type="offer",
        )
    )


def notify_offer_response(
    send: Sender, offer_id: str, worker_id: str, customer_name: str, service_title: str, new_status: str
) -> bool:
    """Only accepted/rejected offers notify the worker."""
    response_text = OFFER_RESPONSE_TEXT.get(new_status)
    if response_text is None:
        return True
    return send(
        CreateNotificationParams(
            user_id=worker_id,
            type="offer_response",
            title="Offer Response",
            message=f"{customer_name} {response_text} {service_title}",
            related_id=offer_id,
            related_type="offer",
        )
    )


def notify_admin_action(send: Sender, user_id: str, details: str) -> bool:
    return send(
        CreateNotificationParams(
            user_id=user_id,
            type="admin_action",
            title="Account Update",
            message=f"Your account has been updated by an administrator: {details}",
            related_id=user_id,
            related_type="admin_action",
        )
    )


def notify_profile_verification_status(send: Sender, user_id: str, is_verified: bool) -> bool:
    message = (
        "Your profile has been verified by an administrator"
        if is_verified
        else "Your profile verification has been revoked by an administrator"
    )
    return send(
        CreateNotificationParams(
            user_id=user_id,
            type="profile_verification",
            title="Profile Verification Update",
            message=message,
            related_id=user_id,
            related_type="profile",
        )
    )


def notify_new_review(send: Sender, review_id: str, reviewed_user_id: str, reviewer_name: str, service_title: str) -> bool:
    return send(
        CreateNotificationParams(
            user_id=reviewed_user_id,
            type="new_review",
            title="New Review Received",
            message=f"{reviewer_name} has posted a review for {service_title}",
            related_id=review_id,
            related_type="review",
        )
    )


def notify_new_booking(
    send: Sender,
    booking_id: str,
    admin_ids: list[str],
    customer_name: str,
    worker_name: str,
    service_title: str,
) -> bool:
    return _send_all(
        send,
        [
            CreateNotificationParams(
                user_id=admin_id,
                type="new_booking",
                title="New Booking Created",
                message=f"{customer_name} has booked {worker_name} for {service_title}",
                related_id=booking_id,
                related_type="booking",
            )
            for admin_id in admin_ids
        ],
    )


def notify_booking_status_changed(
    send: Sender,
    booking_id: str,
    customer_id: str,
    worker_id: str,
    customer_name: str,
    worker_name: str,
    service_title: str,
    new_status: str,
    old_status: str,
) -> bool:
    """Both sides of the booking hear about it."""
    if new_status == old_status:
        return True
    status_text = BOOKING_STATUS_TEXT.get(new_status, "updated")
    ok = _send_all(
        send,
        [
            CreateNotificationParams(
                user_id=customer_id,
                type="booking_status_changed",
                title="Booking Update",
                message=f"Your booking with {worker_name} for {service_title} has been {status_text}",
                related_id=booking_id,
                related_type="booking",
            ),
            CreateNotificationParams(
                user_id=worker_id,
                type="booking_status_changed",
                title="Booking Update",
                message=f"Your booking with {customer_name} for {service_title} has been {status_text}",
                related_id=booking_id,
                related_type="booking",
            ),
        ],
    )
    if not ok:
        logger.warning("Booking %s status notification partly failed", booking_id)
    return ok
