"""Per-user broker credential storage.

Credential fields are serialized as one JSON blob per broker row. When
``CREDENTIAL_ENCRYPTION_KEY`` is set the blob is Fernet-encrypted before it
is written; without a key it is stored as plain JSON.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tradescope.config import get_settings
from tradescope.core.brokers.models import (
    BrokerCreate,
    BrokerCredentials,
    BrokerStatus,
    BrokerType,
)
from tradescope.core.brokers.repository import BrokerRepository
from tradescope.core.result import ServiceResult
from tradescope.db.models import Broker, User

logger = logging.getLogger(__name__)

UNAUTHENTICATED = "User not authenticated"
NOT_FOUND = "Broker not found"
INVALID_FORMAT = "Invalid credentials format"


class CredentialCipher:
    """Encrypts credential blobs when a Fernet key is configured."""

    def __init__(self, key: Optional[str] = None):
        key = get_settings().credential_encryption_key if key is None else key
        self._fernet = Fernet(key.encode()) if key else None
        if self._fernet is None:
            logger.warning(
                "CREDENTIAL_ENCRYPTION_KEY not set - broker credentials are stored unencrypted"
            )

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        if not self._fernet:
            return plaintext
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, stored: str) -> str:
        """Reverse ``encrypt``.

        Raises:
            ValueError: If the blob was not produced with this key
        """
        if not self._fernet:
            return stored
        try:
            return self._fernet.decrypt(stored.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Credential blob cannot be decrypted") from e


class CredentialStore:
    """Stores, reads, updates and deletes a user's broker credentials.

    Every operation fails with ``"User not authenticated"`` when no user is
    given, before any storage access.
    """

    def __init__(
        self,
        db: Session,
        user: Optional[User],
        cipher: Optional[CredentialCipher] = None,
    ):
        self.db = db
        self.user = user
        self.cipher = cipher or CredentialCipher()
        self.repo = BrokerRepository(db)

    def serialize(self, credentials: BrokerCredentials) -> str:
        return self.cipher.encrypt(credentials.model_dump_json(exclude_none=True))

    def deserialize(self, blob: Optional[str]) -> BrokerCredentials:
        """Decode a stored blob.

        Raises:
            ValueError: If the blob is missing, undecryptable or not valid JSON
        """
        if not blob:
            raise ValueError("Empty credential blob")
        try:
            return BrokerCredentials.model_validate_json(self.cipher.decrypt(blob))
        except ValidationError as e:
            raise ValueError(str(e)) from e

    def list(self) -> ServiceResult:
        """List the user's broker connections (without credentials)."""
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)
        return ServiceResult.ok(self.repo.get_all(self.user.id))

    def store(self, credential_data: BrokerCreate) -> ServiceResult:
        """Create a broker connection holding the given credentials."""
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)

        try:
            broker_type = BrokerType.parse(credential_data.broker_type or credential_data.name)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        try:
            broker = self.repo.create(
                user_id=self.user.id,
                broker_name=credential_data.name,
                broker_type=broker_type,
                credentials=self.serialize(credential_data.credentials()),
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to store credentials for {credential_data.name}: {e}")
            return ServiceResult.fail("Failed to add broker")

        logger.info(f"Stored {broker_type.value} credentials for user {self.user.id}")
        return ServiceResult.ok(broker)

    def _owned(self, broker_id: str) -> Optional[Broker]:
        return self.repo.get_by_id(broker_id, self.user.id)

    def get(self, broker_id: str) -> ServiceResult:
        """Get a broker with its decoded credentials.

        Returns:
            ServiceResult with ``{"broker": Broker, "credentials": BrokerCredentials}``
        """
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)

        broker = self._owned(broker_id)
        if not broker:
            return ServiceResult.fail(NOT_FOUND)

        try:
            credentials = self.deserialize(broker.credentials)
        except ValueError as e:
            logger.warning(f"Malformed credential blob for broker {broker.id}: {e}")
            return ServiceResult.fail(INVALID_FORMAT)

        return ServiceResult.ok({"broker": broker, "credentials": credentials})

    def update(self, broker_id: str, new_credentials: BrokerCredentials) -> ServiceResult:
        """Replace a broker's credential blob."""
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)

        broker = self._owned(broker_id)
        if not broker:
            return ServiceResult.fail(NOT_FOUND)

        broker.credentials = self.serialize(new_credentials)
        self.db.flush()
        return ServiceResult.ok(broker)

    def set_status(self, broker_id: str, status: str) -> ServiceResult:
        """Transition a broker between active and inactive."""
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)

        try:
            new_status = BrokerStatus(status)
        except ValueError:
            return ServiceResult.fail(f"Invalid status: {status}")

        broker = self._owned(broker_id)
        if not broker:
            return ServiceResult.fail(NOT_FOUND)

        return ServiceResult.ok(self.repo.set_status(broker, new_status))

    def delete(self, broker_id: str) -> ServiceResult:
        """Delete a broker connection and its credentials."""
        if self.user is None:
            return ServiceResult.fail(UNAUTHENTICATED)

        broker = self._owned(broker_id)
        if not broker:
            return ServiceResult.fail(NOT_FOUND)

        self.repo.delete(broker)
        logger.info(f"Deleted broker {broker_id} for user {self.user.id}")
        return ServiceResult.ok()
