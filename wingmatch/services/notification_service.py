"""Hand-off to the push-notification collaborator.

Delivery itself lives outside the engine. The engine only reports what
happened, with enough ids for the dispatcher to look up push tokens.
"""

from typing import Optional

import sentry_sdk

from wingmatch.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class Notifier:
    """
    Notification dispatcher interface.

    The default implementation only logs. Deployments plug in a real
    dispatcher with `set_notifier`.
    """

    def notify_match(self, user_a_id: str, user_b_id: str) -> None:
        logger.info("Match notification queued", user_a_id=user_a_id, user_b_id=user_b_id)

    def notify_suggestion(self, actor_id: str, suggested_by: str) -> None:
        logger.info("Suggestion notification queued", actor_id=actor_id, suggested_by=suggested_by)

    def notify_invite(self, dater_id: str, phone_number: str) -> None:
        logger.info("Invite notification queued", dater_id=dater_id, phone_number=phone_number)


_notifier: Notifier = Notifier()


def get_notifier() -> Notifier:
    """Return the active notifier."""
    return _notifier


def set_notifier(notifier: Optional[Notifier]) -> None:
    """Install a notifier; None restores the logging default."""
    global _notifier
    _notifier = notifier or Notifier()


def dispatch_match(user_a_id: str, user_b_id: str) -> None:
    """Report a new match. Failures are logged; the match itself stands."""
    with sentry_sdk.start_span(op="notify.match", name=f"{user_a_id} <-> {user_b_id}"):
        try:
            get_notifier().notify_match(user_a_id, user_b_id)
        except Exception as e:
            log_error(logger, e, "Failed to dispatch match notification", {"user_a_id": user_a_id, "user_b_id": user_b_id})


def dispatch_suggestion(actor_id: str, suggested_by: str) -> None:
    """Report a new wingperson suggestion."""
    with sentry_sdk.start_span(op="notify.suggestion", name=actor_id):
        try:
            get_notifier().notify_suggestion(actor_id, suggested_by)
        except Exception as e:
            log_error(
                logger, e, "Failed to dispatch suggestion notification", {"actor_id": actor_id, "suggested_by": suggested_by}
            )


def dispatch_invite(dater_id: str, phone_number: str) -> None:
    """Report a new wingperson invite."""
    with sentry_sdk.start_span(op="notify.invite", name=dater_id):
        try:
            get_notifier().notify_invite(dater_id, phone_number)
        except Exception as e:
            log_error(logger, e, "Failed to dispatch invite notification", {"dater_id": dater_id})
