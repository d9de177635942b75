from uuid import uuid4

import pytest

from skillswap.models.schemas import ProjectStatus, User, UserRole


@pytest.fixture
def parties(make_user):
    return make_user(UserRole.CLIENT, name="client"), make_user(UserRole.FREELANCER, name="freelancer")


@pytest.fixture
def completed_project(make_project, parties):
    owner, freelancer = parties
    return make_project(owner, status=ProjectStatus.COMPLETED, freelancer_user_id=freelancer.user_id)


def post_review(client, headers, project_id, rating=5, comment="Great work"):
    return client.post("/api/reviews", json={"project_id": str(project_id), "rating": rating, "comment": comment}, headers=headers)


def test_client_reviews_freelancer(client, db, parties, completed_project, headers_for):
    owner, freelancer = parties

    response = post_review(client, headers_for(owner), completed_project.project_id, rating=4)

    assert response.status_code == 201
    review = response.json()
    assert review["reviewer_user_id"] == str(owner.user_id)
    assert review["reviewee_user_id"] == str(freelancer.user_id)
    assert db.get("users", str(freelancer.user_id), pydantic_model=User).average_rating == 4.0


def test_average_rating_covers_all_received_reviews(client, db, make_user, make_project, parties, headers_for):
    owner, freelancer = parties
    other_owner = make_user(UserRole.CLIENT)
    first = make_project(owner, status=ProjectStatus.COMPLETED, freelancer_user_id=freelancer.user_id)
    second = make_project(other_owner, status=ProjectStatus.COMPLETED, freelancer_user_id=freelancer.user_id)

    post_review(client, headers_for(owner), first.project_id, rating=5)
    post_review(client, headers_for(other_owner), second.project_id, rating=2)

    assert db.get("users", str(freelancer.user_id), pydantic_model=User).average_rating == 3.5


def test_review_requires_completed_project(client, make_project, parties, headers_for):
    owner, freelancer = parties
    in_progress = make_project(owner, status=ProjectStatus.IN_PROGRESS, freelancer_user_id=freelancer.user_id)

    response = post_review(client, headers_for(owner), in_progress.project_id)

    assert response.status_code == 400
    assert response.json()["detail"] == "Reviews can only be submitted for completed projects."


def test_outsider_cannot_review(client, make_user, completed_project, headers_for):
    response = post_review(client, headers_for(make_user()), completed_project.project_id)
    assert response.status_code == 403


def test_one_review_per_reviewer(client, parties, completed_project, headers_for):
    owner, freelancer = parties
    assert post_review(client, headers_for(owner), completed_project.project_id).status_code == 201
    assert post_review(client, headers_for(freelancer), completed_project.project_id).status_code == 201

    again = post_review(client, headers_for(owner), completed_project.project_id)
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already reviewed this project."


def test_rating_out_of_range(client, parties, completed_project, headers_for):
    owner, _ = parties
    assert post_review(client, headers_for(owner), completed_project.project_id, rating=6).status_code == 422


def test_list_reviews(client, parties, completed_project, headers_for):
    owner, freelancer = parties
    post_review(client, headers_for(owner), completed_project.project_id)
    headers = headers_for(owner)

    by_project = client.get(f"/api/reviews/project/{completed_project.project_id}", headers=headers).json()
    written = client.get(f"/api/reviews/user/{owner.user_id}", headers=headers).json()
    received = client.get(f"/api/reviews/freelancer/{freelancer.user_id}", headers=headers).json()

    assert len(by_project) == len(written) == len(received) == 1
    assert client.get(f"/api/reviews/project/{uuid4()}", headers=headers).status_code == 404


def test_respond_to_review(client, parties, completed_project, headers_for):
    owner, freelancer = parties
    review = post_review(client, headers_for(owner), completed_project.project_id).json()
    url = f"/api/reviews/{review['review_id']}/response"

    assert client.put(url, json={"response": "Thanks!"}, headers=headers_for(owner)).status_code == 403

    response = client.put(url, json={"response": "Thanks!"}, headers=headers_for(freelancer))
    assert response.status_code == 200
    assert response.json()["response"] == "Thanks!"
    assert response.json()["response_date"] is not None

    assert client.put(url, json={"response": "Again"}, headers=headers_for(freelancer)).status_code == 400


def test_delete_review_recomputes_rating(client, db, parties, completed_project, headers_for):
    owner, freelancer = parties
    review = post_review(client, headers_for(owner), completed_project.project_id).json()
    url = f"/api/reviews/{review['review_id']}"

    assert client.delete(url, headers=headers_for(freelancer)).status_code == 403
    assert client.delete(url, headers=headers_for(owner)).status_code == 204
    assert db.get("users", str(freelancer.user_id), pydantic_model=User).average_rating is None
