import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel as PydanticBaseModel # Alias Pydantic's BaseModel

from skillswap.core.config import get_settings

logger = logging.getLogger(__name__)


class FirebaseManager:
    """
    Firebase Firestore Manager for handling database operations
    """
    _instance = None
    _db = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._db is None:
            self.initialize_firebase()

    def initialize_firebase(self):
        """Initialize Firebase Admin SDK"""
        settings = get_settings()
        try:
            app = firebase_admin.get_app()
            self._db = firestore.client(app)
            logger.debug("Using existing Firebase app")
            return
        except ValueError:
            pass # App doesn't exist, so we need to initialize it

        project_id = settings.firebase_project_id
        if not project_id and settings.firebase_config_path and os.path.exists(settings.firebase_config_path):
            with open(settings.firebase_config_path, 'r') as f:
                project_id = json.load(f).get('projectId')
                logger.info("Found Firebase project ID %s in %s", project_id, settings.firebase_config_path)

        options = {'projectId': project_id} if project_id else None
        service_account_path = settings.firebase_credentials_path
        try:
            if service_account_path and os.path.exists(service_account_path):
                cred = credentials.Certificate(service_account_path)
                logger.info("Initializing Firebase with service account key from %s", service_account_path)
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Initializing Firebase with application default credentials")
            firebase_admin.initialize_app(cred, options)
            self._db = firestore.client()
        except (ValueError, google_exceptions.GoogleAPIError) as e:
            logger.error(
                "Could not initialize Firebase: %s. Set FIREBASE_CREDENTIALS_PATH or "
                "GOOGLE_APPLICATION_CREDENTIALS to a service account key.", e
            )

    def get_db(self):
        """Get Firestore database client"""
        if self._db is None:
            logger.warning("Firestore DB client accessed before initialization or initialization failed.")
        return self._db


class FirestoreBaseModel:
    """
    Base model class for Firestore database operations, adapted for Pydantic.

    Store failures are logged and reported through the return value
    (None / [] / False) so that routes can answer with a 500.
    """

    def __init__(self):
        self.firebase_manager = FirebaseManager()
        self.db = self.firebase_manager.get_db()

    def _prepare_data_for_firestore(self, data_model: Any) -> Dict[str, Any]:
        """Converts Pydantic model or dict to a Firestore-compatible dict."""
        if isinstance(data_model, PydanticBaseModel):
            # JSON mode turns UUIDs and datetimes into strings Firestore can store and query.
            return data_model.model_dump(mode="json")
        if isinstance(data_model, dict):
            return data_model.copy()
        raise ValueError("Data must be a Pydantic model or a dictionary.")

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def save(self, collection_name: str, data_model: Any, document_id: Optional[str] = None) -> Optional[str]:
        """Save Pydantic model or dictionary to Firestore"""
        if not self.db:
            logger.error("Database not initialized")
            return None

        data = self._prepare_data_for_firestore(data_model)
        now = self._now()
        data['updated_at'] = now
        data.setdefault('created_at', now)

        try:
            if document_id:
                doc_ref = self.db.collection(collection_name).document(document_id)
                doc_ref.set(data, merge=True) # Use set with merge=True for creating or updating
                return document_id
            # add() returns a tuple (timestamp, DocumentReference)
            _, doc_ref = self.db.collection(collection_name).add(data)
            return doc_ref.id
        except google_exceptions.GoogleAPIError:
            logger.exception("Error saving to Firestore collection '%s'", collection_name)
            return None

    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        """Get document from Firestore by ID, optionally parsing into a Pydantic model."""
        if not self.db:
            logger.error("Database not initialized")
            return None

        try:
            doc = self.db.collection(collection_name).document(document_id).get()
        except google_exceptions.GoogleAPIError:
            logger.exception("Error getting document '%s' from collection '%s'", document_id, collection_name)
            return None

        if not doc.exists:
            return None
        data = doc.to_dict()
        if pydantic_model:
            return pydantic_model(**data)
        return data

    def _collect(self, docs_stream, pydantic_model):
        results = []
        for doc in docs_stream:
            data = {'id': doc.id, **doc.to_dict()}
            results.append(pydantic_model(**data) if pydantic_model else data)
        return results

    def get_all(self, collection_name: str, limit: Optional[int] = None, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Get all documents from a collection, optionally parsing into Pydantic models."""
        if not self.db:
            logger.error("Database not initialized")
            return []

        try:
            collection_ref = self.db.collection(collection_name)
            if limit:
                collection_ref = collection_ref.limit(limit)
            return self._collect(collection_ref.stream(), pydantic_model)
        except google_exceptions.GoogleAPIError:
            logger.exception("Error getting documents from collection '%s'", collection_name)
            return []

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Query documents by field, optionally parsing into Pydantic models."""
        if not self.db:
            logger.error("Database not initialized")
            return []

        try:
            query_ref = self.db.collection(collection_name).where(field, operator, value)
            return self._collect(query_ref.stream(), pydantic_model)
        except google_exceptions.GoogleAPIError:
            logger.exception("Error querying collection '%s'", collection_name)
            return []

    def update(self, collection_name: str, document_id: str, updates: Dict[str, Any]) -> bool:
        """Update specific fields in a document."""
        if not self.db:
            logger.error("Database not initialized")
            return False

        updates_copy = updates.copy() # Avoid modifying the input dict
        updates_copy['updated_at'] = self._now()
        try:
            self.db.collection(collection_name).document(document_id).update(updates_copy)
            return True
        except google_exceptions.GoogleAPIError:
            logger.exception("Error updating document '%s' in collection '%s'", document_id, collection_name)
            return False

    def transact(self, collection_name: str, document_id: str, mutate: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Read a document, pass it through `mutate` and write the result back,
        all inside one Firestore transaction.

        The store retries the transaction when the document changes
        concurrently, so `mutate` must be free of side effects. Exceptions
        raised by `mutate` abort the transaction and propagate to the caller.
        Returns the written data, or None if the document does not exist or
        the store failed.
        """
        if not self.db:
            logger.error("Database not initialized")
            return None

        doc_ref = self.db.collection(collection_name).document(document_id)

        @firestore.transactional
        def _apply(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            updated = mutate(snapshot.to_dict())
            updated['updated_at'] = self._now()
            transaction.set(doc_ref, updated)
            return updated

        try:
            return _apply(self.db.transaction())
        except google_exceptions.GoogleAPIError:
            logger.exception("Transaction on document '%s' in collection '%s' failed", document_id, collection_name)
            return None

    def delete(self, collection_name: str, document_id: str) -> bool:
        """Delete a document from Firestore."""
        if not self.db:
            logger.error("Database not initialized")
            return False

        try:
            self.db.collection(collection_name).document(document_id).delete()
            return True
        except google_exceptions.GoogleAPIError:
            logger.exception("Error deleting document '%s' from collection '%s'", document_id, collection_name)
            return False


def get_firestore_ops_instance():
    return FirestoreBaseModel()
