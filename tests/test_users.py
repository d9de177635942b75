from datetime import datetime, timezone
from uuid import uuid4

from skillswap.models.schemas import EarningEntry, Earnings, User, UserRole


def test_get_user_profile(client, make_user, headers_for):
    viewer = make_user()
    target = make_user(UserRole.FREELANCER, name="ada")

    response = client.get(f"/api/users/{target.user_id}", headers=headers_for(viewer))

    assert response.status_code == 200
    assert response.json()["username"] == "ada"
    assert client.get(f"/api/users/{uuid4()}", headers=headers_for(viewer)).status_code == 404


def test_freelancer_profile_lookup(client, make_user, headers_for):
    viewer = make_user()
    freelancer = make_user(UserRole.FREELANCER)

    assert client.get(f"/api/users/freelancer/{freelancer.user_id}", headers=headers_for(viewer)).status_code == 200
    # Clients are not freelancers.
    response = client.get(f"/api/users/freelancer/{viewer.user_id}", headers=headers_for(viewer))
    assert response.status_code == 404
    assert response.json()["detail"] == "Freelancer not found"


def test_update_freelancer_profile(client, db, make_user, headers_for):
    freelancer = make_user(UserRole.FREELANCER)

    response = client.put(
        "/api/users/freelancer/profile",
        json={"title": "Backend developer", "skills": ["python", "fastapi"], "hourly_rate": 60},
        headers=headers_for(freelancer),
    )

    assert response.status_code == 200
    stored = db.get("users", str(freelancer.user_id), pydantic_model=User)
    assert stored.title == "Backend developer"
    assert stored.skills == ["python", "fastapi"]
    assert stored.hourly_rate == 60


def test_profile_update_does_not_touch_earnings(client, db, make_user, headers_for):
    freelancer = make_user(UserRole.FREELANCER)
    db.update("users", str(freelancer.user_id), {"earnings": {"total": 42.0, "history": []}})

    client.put("/api/users/freelancer/profile", json={"bio": "Hello"}, headers=headers_for(freelancer))

    assert db.get("users", str(freelancer.user_id), pydantic_model=User).earnings.total == 42.0


def test_client_has_no_freelancer_profile(client, make_user, headers_for):
    response = client.put("/api/users/freelancer/profile", json={"bio": "x"}, headers=headers_for(make_user()))
    assert response.status_code == 403


def test_empty_profile_update(client, make_user, headers_for):
    response = client.put("/api/users/freelancer/profile", json={}, headers=headers_for(make_user(UserRole.FREELANCER)))
    assert response.status_code == 400


def test_experience_crud(client, db, make_user, headers_for):
    freelancer = make_user(UserRole.FREELANCER)
    headers = headers_for(freelancer)

    added = client.post(
        "/api/users/freelancer/experience",
        json={"title": "Engineer", "company": "Acme", "description": "APIs"},
        headers=headers,
    )
    assert added.status_code == 201
    experience_id = added.json()["experience"][0]["experience_id"]

    updated = client.put(
        f"/api/users/freelancer/experience/{experience_id}",
        json={"title": "Senior Engineer", "company": "Acme"},
        headers=headers,
    )
    assert updated.json()["experience"][0]["title"] == "Senior Engineer"
    assert updated.json()["experience"][0]["experience_id"] == experience_id

    assert client.delete(f"/api/users/freelancer/experience/{uuid4()}", headers=headers).status_code == 404
    removed = client.delete(f"/api/users/freelancer/experience/{experience_id}", headers=headers)
    assert removed.json()["experience"] == []
    assert db.get("users", str(freelancer.user_id), pydantic_model=User).experience == []


def test_earnings_summary(client, make_user, headers_for):
    now = datetime.now(timezone.utc)
    earnings = Earnings(
        total=150.0,
        history=[
            EarningEntry(project_id=uuid4(), project_title="Old", amount=50.0, date=datetime(2020, 1, 15, tzinfo=timezone.utc)),
            EarningEntry(project_id=uuid4(), project_title="New", amount=100.0, date=now),
        ],
    )
    freelancer = make_user(UserRole.FREELANCER, earnings=earnings)

    response = client.get("/api/users/earnings", headers=headers_for(freelancer))

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 150.0
    assert data["monthly"] == 100.0
    assert data["monthly_data"][0] == {"month": "2020-01", "amount": 50.0}


def test_earnings_for_clients_forbidden(client, make_user, headers_for):
    response = client.get("/api/users/earnings", headers=headers_for(make_user()))
    assert response.status_code == 403
    assert response.json()["detail"] == "Only freelancers can access earnings data"


def test_skills(client, make_user, headers_for):
    freelancer = make_user(UserRole.FREELANCER, skills=["design"])
    assert client.get("/api/users/skills", headers=headers_for(freelancer)).json() == ["design"]
