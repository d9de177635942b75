from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skillswap.core.security import decode_access_token
from skillswap.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from skillswap.models.schemas import User

http_bearer = HTTPBearer(auto_error=False)


def authenticate_token(token: Optional[str], firestore_ops: FirestoreBaseModel) -> Optional[User]:
    """Resolve a bearer token to its user document, or None."""
    if not token:
        return None
    user_id = decode_access_token(token)
    if not user_id:
        return None
    return firestore_ops.get(collection_name="users", document_id=user_id, pydantic_model=User)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    firestore_ops: FirestoreBaseModel = Depends(get_firestore_ops_instance),
) -> User:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_from_token = decode_access_token(credentials.credentials)
    if not user_id_from_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    current_user = firestore_ops.get(collection_name="users", document_id=user_id_from_token, pydantic_model=User)
    if not current_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Authenticated user not found")
    return current_user
