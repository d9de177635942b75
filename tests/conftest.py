import copy
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from skillswap.core.security import create_access_token
from skillswap.db.firebase_ops import get_firestore_ops_instance
from skillswap.main import app
from skillswap.models.schemas import Project, User, UserRole


class InMemoryFirestore:
    """Dict-backed stand-in for FirestoreBaseModel with the same call signatures."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.db = object()

    def docs(self, collection_name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection_name, {})

    @staticmethod
    def _prepare(data_model: Any) -> Dict[str, Any]:
        if isinstance(data_model, BaseModel):
            return data_model.model_dump(mode="json")
        return copy.deepcopy(data_model)

    @staticmethod
    def _parse(doc_id, data, pydantic_model, with_id=False):
        data = copy.deepcopy(data)
        if with_id:
            data = {"id": doc_id, **data}
        return pydantic_model(**data) if pydantic_model else data

    def save(self, collection_name: str, data_model: Any, document_id: Optional[str] = None) -> Optional[str]:
        document_id = document_id or uuid4().hex
        existing = self.docs(collection_name).get(document_id, {})
        self.docs(collection_name)[document_id] = {**existing, **self._prepare(data_model)}
        return document_id

    def get(self, collection_name: str, document_id: str, pydantic_model=None):
        data = self.docs(collection_name).get(str(document_id))
        if data is None:
            return None
        return self._parse(document_id, data, pydantic_model)

    def get_all(self, collection_name: str, limit: Optional[int] = None, pydantic_model=None) -> List[Any]:
        items = list(self.docs(collection_name).items())[:limit]
        return [self._parse(doc_id, data, pydantic_model, with_id=True) for doc_id, data in items]

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model=None) -> List[Any]:
        assert operator == "==", "only equality queries are used"
        return [
            self._parse(doc_id, data, pydantic_model, with_id=True)
            for doc_id, data in self.docs(collection_name).items()
            if data.get(field) == value
        ]

    def update(self, collection_name: str, document_id: str, updates: Dict[str, Any]) -> bool:
        doc = self.docs(collection_name).get(str(document_id))
        if doc is None:
            return False
        doc.update(copy.deepcopy(updates))
        return True

    def transact(self, collection_name: str, document_id: str, mutate: Callable[[Dict[str, Any]], Dict[str, Any]]):
        doc = self.docs(collection_name).get(str(document_id))
        if doc is None:
            return None
        updated = mutate(copy.deepcopy(doc))
        self.docs(collection_name)[str(document_id)] = copy.deepcopy(updated)
        return copy.deepcopy(updated)

    def delete(self, collection_name: str, document_id: str) -> bool:
        self.docs(collection_name).pop(str(document_id), None)
        return True


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.user_id)})


@pytest.fixture
def db():
    fake = InMemoryFirestore()
    app.dependency_overrides[get_firestore_ops_instance] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_firestore_ops_instance, None)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(role: UserRole = UserRole.CLIENT, name: Optional[str] = None, **fields) -> User:
        name = name or f"{role.value}_{uuid4().hex[:6]}"
        user = User(username=name, email=f"{name}@example.com", full_name=name.title(), role=role, **fields)
        db.save("users", user, str(user.user_id))
        return user

    return _make


@pytest.fixture
def make_project(db):
    def _make(owner: User, **fields) -> Project:
        fields.setdefault("title", "Landing page redesign")
        fields.setdefault("description", "Refresh the marketing site.")
        project = Project(client_user_id=owner.user_id, **fields)
        db.save("projects", project, str(project.project_id))
        return project

    return _make


@pytest.fixture
def stored_project(db):
    def _load(project_id) -> Project:
        return db.get("projects", str(project_id), pydantic_model=Project)

    return _load


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def token_of():
    return token_for
