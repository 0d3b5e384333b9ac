import json
import base64
import logging
from typing import Optional
from firebase_admin import credentials, firestore, initialize_app
from portfolio.config.settings import Settings
from portfolio.services.document_store import FirestoreDocumentStore

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "photo-portfolio"

class FirebaseService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.app = None
        self.client = None
        self.error: Optional[str] = None

        try:
            if not self.settings.FIREBASE_SERVICE_ACCOUNT_BASE64:
                logger.warning("FIREBASE_SERVICE_ACCOUNT_BASE64 is missing - Firestore will be disabled")
                self.error = "FIREBASE_SERVICE_ACCOUNT_BASE64 is not set"
                self.connected = False
                return

            service_account_info = json.loads(
                base64.b64decode(self.settings.FIREBASE_SERVICE_ACCOUNT_BASE64).decode("utf-8")
            )
            project_id = self.settings.FIREBASE_PROJECT_ID or service_account_info.get("project_id")

            cred = credentials.Certificate(service_account_info)
            self.app = initialize_app(cred, {"projectId": project_id}, name=FIREBASE_APP_NAME)
            self.client = firestore.client(self.app)
            self.connected = True
            logger.info(f"Firebase initialized for project: {project_id}")

        except Exception as e:
            logger.error(f"Firebase initialization error: {str(e)}", exc_info=True)
            self.error = str(e)
            self.connected = False

    def document_store(self) -> FirestoreDocumentStore:
        if not self.connected:
            raise RuntimeError(f"Firebase not connected: {self.error}")
        return FirestoreDocumentStore(self.client, self.settings.APP_ID)

    def is_connected(self) -> bool:
        return self.connected
