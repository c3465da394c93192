"""
RepairDesk Backend - Push Notification Transport
==================================================

What:  Narrow adapter between the NotificationDispatcher and a push provider.
How:   `PushTransport` is the abstract contract (send to one token, send to
       many tokens). `FirebasePushTransport` implements it with firebase-admin
       Cloud Messaging. The SDK is synchronous, so each call runs in a worker
       thread via asyncio.to_thread to keep the event loop free.
Who:   Built once at startup by build_push_transport(PushConfig); used only by
       the NotificationDispatcher.

Error contract:
    Per-token failures (unregistered token, invalid token) are reported in the
    DeliveryReport and never raised. Failures of the whole call (bad
    credentials, network, SDK errors) raise TransportError. A multicast
    batch that fails as a whole only marks its own tokens failed, unless
    every batch failed.

Delivery is at-most-once. There is no retry here: a retried multicast could
deliver the same message twice to the tokens that already succeeded.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

from repairdesk.config import PushConfig
from repairdesk.exceptions import TransportError

logger = logging.getLogger(__name__)

# FCM rejects multicast batches above 500 tokens
MULTICAST_BATCH_SIZE = 500


@dataclass(frozen=True)
class PushMessage:
    """A localized notification. `data` values are sent as strings."""
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)

    def string_data(self) -> Dict[str, str]:
        return {key: str(value) for key, value in self.data.items() if value is not None}


@dataclass
class TokenOutcome:
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DeliveryReport:
    """Per-token outcome of one send or multicast."""
    success_count: int = 0
    failure_count: int = 0
    outcomes: List[TokenOutcome] = field(default_factory=list)

    @property
    def failed_tokens(self) -> List[str]:
        return [o.token for o in self.outcomes if not o.success]

    def add(self, outcome: TokenOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.success:
            self.success_count += 1
        else:
            self.failure_count += 1

    def merge(self, other: "DeliveryReport") -> None:
        for outcome in other.outcomes:
            self.add(outcome)


class PushTransport(ABC):
    """
    Contract for push providers.

    Implementations return a DeliveryReport for every call and raise
    TransportError only when the call as a whole failed.
    """

    @abstractmethod
    async def send(self, token: str, message: PushMessage) -> DeliveryReport:
        ...

    @abstractmethod
    async def send_multicast(self, tokens: List[str], message: PushMessage) -> DeliveryReport:
        ...


class FirebasePushTransport(PushTransport):
    """
    Firebase Cloud Messaging through the firebase-admin SDK.

    A named firebase app is used so the transport never collides with another
    component that initializes the default app.
    """

    APP_NAME = "repairdesk-push"

    def __init__(self, app: "firebase_admin.App", dry_run: bool = False):
        self.app = app
        self.dry_run = dry_run

    @classmethod
    def from_credentials(cls, credentials_path: str, dry_run: bool = False) -> "FirebasePushTransport":
        """
        Initialize firebase-admin from a service account file.

        Raises:
            TransportError: the file is missing or not a valid service account.
        """
        try:
            app = firebase_admin.get_app(cls.APP_NAME)
        except ValueError:
            try:
                cred = credentials.Certificate(credentials_path)
                app = firebase_admin.initialize_app(cred, name=cls.APP_NAME)
            except (OSError, ValueError) as e:
                raise TransportError(
                    message="Could not initialize Firebase credentials",
                    context={"credentials_path": credentials_path, "error": str(e)},
                )
        logger.info("FirebasePushTransport initialized (dry_run=%s)", dry_run)
        return cls(app, dry_run=dry_run)

    def _notification(self, message: PushMessage) -> "messaging.Notification":
        return messaging.Notification(title=message.title, body=message.body)

    async def send(self, token: str, message: PushMessage) -> DeliveryReport:
        report = DeliveryReport()
        fcm_message = messaging.Message(
            notification=self._notification(message),
            data=message.string_data(),
            token=token,
        )
        try:
            message_id = await asyncio.to_thread(
                messaging.send, fcm_message, self.dry_run, self.app
            )
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError) as e:
            # Token-level failure: report it, do not raise
            report.add(TokenOutcome(token=token, success=False, error=str(e)))
            return report
        except (FirebaseError, ValueError) as e:
            raise TransportError(
                message="Firebase send failed",
                context={"error": str(e)},
            )

        report.add(TokenOutcome(token=token, success=True, message_id=message_id))
        return report

    async def send_multicast(self, tokens: List[str], message: PushMessage) -> DeliveryReport:
        """
        Send to every token in batches of MULTICAST_BATCH_SIZE.

        A batch the SDK rejects as a whole is recorded as failed for each of
        its tokens, so earlier deliveries stay in the report. TransportError
        is raised only when every batch failed.
        """
        report = DeliveryReport()
        batch_errors: List[str] = []
        batch_count = 0
        for start in range(0, len(tokens), MULTICAST_BATCH_SIZE):
            batch = tokens[start:start + MULTICAST_BATCH_SIZE]
            batch_count += 1
            multicast = messaging.MulticastMessage(
                tokens=batch,
                notification=self._notification(message),
                data=message.string_data(),
            )
            try:
                response = await asyncio.to_thread(
                    messaging.send_each_for_multicast, multicast, self.dry_run, self.app
                )
            except (FirebaseError, ValueError) as e:
                logger.warning("Multicast batch of %d token(s) failed: %s", len(batch), e)
                batch_errors.append(str(e))
                for token in batch:
                    report.add(TokenOutcome(token=token, success=False, error=str(e)))
                continue

            for token, send_response in zip(batch, response.responses):
                report.add(
                    TokenOutcome(
                        token=token,
                        success=send_response.success,
                        message_id=send_response.message_id,
                        error=str(send_response.exception) if send_response.exception else None,
                    )
                )

        if batch_errors and len(batch_errors) == batch_count:
            raise TransportError(
                message="Firebase multicast failed",
                context={"error": batch_errors[-1], "token_count": len(tokens)},
            )
        return report


def build_push_transport(config: PushConfig) -> Optional[PushTransport]:
    """
    Build the transport described by `config`.

    Returns None when push is disabled or the credentials cannot be loaded;
    the dispatcher then logs every push attempt and sends nothing.
    """
    if not config.enabled:
        logger.info("Push notifications disabled by configuration")
        return None

    if not config.credentials_path:
        logger.warning("Push notifications enabled but no credentials path is configured")
        return None

    try:
        return FirebasePushTransport.from_credentials(config.credentials_path, dry_run=config.dry_run)
    except TransportError as e:
        logger.error("Push notifications unavailable: %s | Context: %s", e.message, e.context)
        return None
