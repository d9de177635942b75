import json
from uuid import uuid4

import httpx
import pytest

from skillswap.client.api import MarketplaceApi
from skillswap.client.errors import (
    AuthenticationError, AuthorizationError, ClientValidationError, NotFoundError,
    RequestRejectedError, TransportError,
)
from skillswap.core.integrity import hash_metadata
from skillswap.models.schemas import Bid, Message, Project, Review


def project_json(**fields):
    fields.setdefault("title", "P1")
    fields.setdefault("description", "Desc")
    fields.setdefault("client_user_id", uuid4())
    return Project(**fields).model_dump(mode="json")


def make_api(handler):
    return MarketplaceApi("http://testserver/api", "tok-123", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_project_sends_bearer_and_parses_model():
    seen = {}
    payload = project_json()

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        return httpx.Response(200, json=payload)

    async with make_api(handler) as api:
        project = await api.get_project(payload["project_id"])

    assert isinstance(project, Project)
    assert str(project.project_id) == payload["project_id"]
    assert seen == {"auth": "Bearer tok-123", "path": f"/api/projects/{payload['project_id']}"}


@pytest.mark.asyncio
async def test_invalid_ids_never_reach_the_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    async with make_api(handler) as api:
        with pytest.raises(ClientValidationError) as exc_info:
            await api.accept_bid("not-a-uuid", uuid4())
        assert exc_info.value.message == "Invalid project ID format"
        with pytest.raises(ClientValidationError):
            await api.fetch_messages(uuid4(), "")
        with pytest.raises(ClientValidationError):
            await api.submit_bid(uuid4(), 0, "cheap")
        with pytest.raises(ClientValidationError):
            await api.submit_review(uuid4(), 9)

    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error_type", [
    (401, AuthenticationError),
    (403, AuthorizationError),
    (404, NotFoundError),
])
async def test_status_codes_map_to_errors(status_code, error_type):
    def handler(request):
        return httpx.Response(status_code, json={"detail": "Server says no"})

    async with make_api(handler) as api:
        with pytest.raises(error_type) as exc_info:
            await api.get_projects()

    assert exc_info.value.message == "Server says no"
    assert exc_info.value.status_code == status_code


@pytest.mark.asyncio
async def test_lifecycle_refusal_carries_current_status():
    def handler(request):
        return httpx.Response(400, json={
            "detail": "Bid is not pending (current status: accepted)",
            "current_status": "accepted",
            "subject": "bid",
        })

    async with make_api(handler) as api:
        with pytest.raises(RequestRejectedError) as exc_info:
            await api.accept_bid(uuid4(), uuid4())

    assert exc_info.value.current_status == "accepted"
    assert "not pending" in exc_info.value.message


@pytest.mark.asyncio
async def test_validation_errors_are_readable():
    def handler(request):
        return httpx.Response(422, json={"detail": [{"msg": "Field required"}, {"msg": "Input should be greater than 0"}]})

    async with make_api(handler) as api:
        with pytest.raises(RequestRejectedError) as exc_info:
            await api.create_project({"title": "x"})

    assert exc_info.value.message == "Field required; Input should be greater than 0"


@pytest.mark.asyncio
async def test_transport_failures_are_typed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_api(handler) as api:
        with pytest.raises(TransportError):
            await api.get_projects()


@pytest.mark.asyncio
async def test_submit_bid_posts_body():
    project_id = uuid4()
    bid = Bid(freelancer_user_id=uuid4(), amount=100, message="Hi").model_dump(mode="json")
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=bid)

    async with make_api(handler) as api:
        result = await api.submit_bid(project_id, 100, "Hi", "1 week")

    assert isinstance(result, Bid)
    assert seen["method"] == "POST"
    assert seen["path"] == f"/api/projects/{project_id}/bids"
    assert seen["body"] == {"amount": 100, "message": "Hi", "estimated_completion_time": "1 week"}


@pytest.mark.asyncio
async def test_delete_project_returns_id_on_204():
    project_id = uuid4()

    async with make_api(lambda request: httpx.Response(204)) as api:
        assert await api.delete_project(project_id) == str(project_id)


@pytest.mark.asyncio
async def test_rest_send_message_includes_matching_hash():
    sender, recipient, project_id = uuid4(), uuid4(), uuid4()
    seen = {}

    def handler(request):
        body = json.loads(request.content)
        seen.update(body)
        message = Message(
            project_id=body["project_id"], sender_id=sender, recipient_id=body["recipient_id"],
            text=body["text"], timestamp=body["timestamp"], metadata_hash=body["metadata_hash"],
        )
        return httpx.Response(201, json=message.model_dump(mode="json"))

    async with make_api(handler) as api:
        message = await api.send_message(sender, project_id, recipient, "Hello")

    assert message.text == "Hello"
    assert seen["metadata_hash"] == hash_metadata(sender, recipient, seen["timestamp"], project_id)
    assert seen["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_review_listing_routes():
    freelancer_id = uuid4()
    review = Review(project_id=uuid4(), reviewer_user_id=uuid4(), reviewee_user_id=freelancer_id, rating=5)
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json=[review.model_dump(mode="json")])

    async with make_api(handler) as api:
        received = await api.get_freelancer_reviews(freelancer_id)

    assert received == [review]
    assert paths == [f"/api/reviews/freelancer/{freelancer_id}"]
