"""Notification delivery.

``NotificationService`` is created once at application start and handed to
whatever needs it (the realtime router, request handlers through
``app.state``). Each intent goes to every configured transport; a transport
failure is logged and dropped so it can never fail the operation that
produced the notification.
"""

import json
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodshare.core.exceptions import NotificationDeliveryFailure
from foodshare.models.notification import Notification, PushSubscription
from foodshare.schemas.notification import PushSubscriptionCreate
from foodshare.services.connection_manager import ConnectionManager, user_channel
from foodshare.services.notification_rules import NotificationIntent

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class NotificationTransport:
    """Delivers one intent to one user. Raises NotificationDeliveryFailure."""

    name = "transport"

    async def send(self, user_id: int, intent: NotificationIntent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class InAppTransport(NotificationTransport):
    """Writes the notification to the user's inbox."""

    name = "in_app"

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def send(self, user_id: int, intent: NotificationIntent) -> None:
        payload = intent.payload
        db = self.session_factory()
        try:
            db.add(
                Notification(
                    user_id=user_id,
                    title=payload.title,
                    body=payload.body,
                    tag=payload.tag,
                    data=payload.data.model_dump(exclude_none=True),
                    require_interaction=payload.require_interaction,
                )
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise NotificationDeliveryFailure(self.name, str(e)) from e
        finally:
            db.close()


class WebSocketTransport(NotificationTransport):
    """Pushes the payload to the user's open WebSocket connections."""

    name = "websocket"

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def send(self, user_id: int, intent: NotificationIntent) -> None:
        message = {
            "event": "notification",
            "kind": intent.kind.value,
            "urgency": intent.urgency.value,
            "payload": intent.payload.model_dump(exclude_none=True),
        }
        await self.manager.send(message, user_channel(user_id))


class FirebaseTransport(NotificationTransport):
    """Firebase Cloud Messaging to the devices a user registered."""

    name = "firebase"

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        self._initialized = False
        self._app = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, credentials_path: Optional[str] = None) -> None:
        try:
            import firebase_admin
            from firebase_admin import credentials as fb_credentials

            if credentials_path:
                cred = fb_credentials.Certificate(credentials_path)
                self._app = firebase_admin.initialize_app(cred)
            else:
                self._app = firebase_admin.initialize_app()
            self._initialized = True
            logger.info("Firebase Admin SDK initialized")
        except ImportError:
            logger.info("firebase-admin not installed, push notifications disabled")
        except Exception as e:
            logger.warning(f"Firebase initialization failed: {e}. Push notifications disabled.")

    async def send(self, user_id: int, intent: NotificationIntent) -> None:
        if not self._initialized:
            return
        tokens = self._device_tokens(user_id)
        if not tokens:
            return
        try:
            from firebase_admin import messaging

            payload = intent.payload.with_defaults()
            message = messaging.MulticastMessage(
                notification=messaging.Notification(title=payload.title, body=payload.body),
                data=self._string_data(payload),
                tokens=tokens,
            )
            response = messaging.send_each_for_multicast(message, app=self._app)
        except Exception as e:
            raise NotificationDeliveryFailure(self.name, str(e)) from e
        if response.failure_count:
            logger.warning(
                f"Push to user {user_id}: {response.failure_count} of {len(tokens)} devices failed"
            )

    def _device_tokens(self, user_id: int) -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()
            return [row.endpoint for row in rows]
        except SQLAlchemyError as e:
            raise NotificationDeliveryFailure(self.name, f"subscription lookup failed: {e}") from e
        finally:
            db.close()

    @staticmethod
    def _string_data(payload) -> Dict[str, str]:
        """FCM data values must be strings."""
        data = payload.data.model_dump(exclude_none=True)
        out = {k: v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}
        out["tag"] = payload.tag
        out["require_interaction"] = json.dumps(payload.require_interaction)
        out["actions"] = json.dumps([a.model_dump() for a in payload.actions])
        return out


class ServiceState(str, Enum):
    CREATED = "created"
    READY = "ready"
    CLOSED = "closed"


class NotificationService:
    """Explicit notification component with an initialize/teardown lifecycle."""

    def __init__(self, transports: Sequence[NotificationTransport]):
        self.transports = list(transports)
        self.state = ServiceState.CREATED
        self.sent = 0
        self.failed = 0

    def initialize(self) -> None:
        self.state = ServiceState.READY
        logger.info(
            f"Notification service ready with transports: {', '.join(t.name for t in self.transports)}"
        )

    def request_permission(self, db: Session, user_id: int, subscription: PushSubscriptionCreate) -> PushSubscription:
        """Store (or move to ``user_id``) a browser push subscription."""
        existing = db.query(PushSubscription).filter(PushSubscription.endpoint == subscription.endpoint).first()
        if existing is None:
            existing = PushSubscription(user_id=user_id, endpoint=subscription.endpoint)
            db.add(existing)
        existing.user_id = user_id
        existing.p256dh = subscription.keys.p256dh
        existing.auth = subscription.keys.auth
        db.commit()
        db.refresh(existing)
        logger.info(f"Push subscription registered for user {user_id}")
        return existing

    async def dispatch(self, intents: Sequence[NotificationIntent]) -> int:
        """Deliver intents to every recipient over every transport.

        Returns the number of successful (recipient, transport) deliveries.
        Never raises for delivery problems.
        """
        if self.state != ServiceState.READY:
            if intents:
                logger.warning(f"Notification service is {self.state.value}; dropping {len(intents)} intents")
            return 0

        delivered = 0
        for intent in intents:
            for user_id in intent.recipient_user_ids:
                for transport in self.transports:
                    try:
                        await transport.send(user_id, intent)
                        delivered += 1
                    except NotificationDeliveryFailure as e:
                        self.failed += 1
                        logger.warning(f"Notification '{intent.payload.tag}' to user {user_id} dropped: {e}")
                    except Exception as e:
                        self.failed += 1
                        logger.error(
                            f"Unexpected {transport.name} error for '{intent.payload.tag}' to user {user_id}: {e}",
                            exc_info=True,
                        )
        self.sent += delivered
        return delivered

    async def teardown(self) -> None:
        for transport in self.transports:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(f"Closing {transport.name} transport failed: {e}")
        self.state = ServiceState.CLOSED
        logger.info("Notification service stopped")


def build_notification_service(
    session_factory: SessionFactory,
    manager: ConnectionManager,
    firebase_credentials_path: Optional[str] = None,
) -> NotificationService:
    transports: List[NotificationTransport] = [
        InAppTransport(session_factory),
        WebSocketTransport(manager),
    ]
    if firebase_credentials_path:
        firebase = FirebaseTransport(session_factory)
        firebase.initialize(firebase_credentials_path)
        if firebase.initialized:
            transports.append(firebase)
    return NotificationService(transports)
