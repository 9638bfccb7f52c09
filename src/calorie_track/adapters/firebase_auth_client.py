"""Firebase Admin SDK adapter for ID token verification."""

import asyncio
from dataclasses import dataclass

import firebase_admin
from firebase_admin import auth

from calorie_track.services.auth import TokenVerifier


@dataclass
class FirebaseAuthClient(TokenVerifier):
    """Verify Firebase ID tokens issued to the web client."""

    app: firebase_admin.App

    @classmethod
    def create(cls, project_id: str) -> "FirebaseAuthClient":
        """Reuse the default Firebase app or initialize it for the project."""
        try:
            app = firebase_admin.get_app()
        except ValueError:
            app = firebase_admin.initialize_app(options={"projectId": project_id})
        return cls(app=app)

    async def verify_id_token(self, token: str) -> dict[str, object]:
        """Verify the token off the event loop; the SDK call is blocking."""
        return await asyncio.to_thread(auth.verify_id_token, token, app=self.app)
