"""Pytest configuration and fixtures for integration tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from habitmate.main import app


@pytest.fixture
def client(isolated_storage: Path) -> Generator[TestClient]:
    """Run the app, with its lifespan, against a fresh SQLite file and photo bucket."""
    with TestClient(app) as test_client:
        yield test_client


class ApiUser:
    """A signed-in user talking to the API through the shared TestClient."""

    def __init__(self, client: TestClient, user_id: str) -> None:
        self.client = client
        self.user_id = user_id
        response = client.post("/api/auth/sign-in", json={"user_id": user_id, "email": f"{user_id}@example.com"})
        assert response.status_code == 200, response.text
        self.session = response.json()

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.session['access_token']}"}

    def get(self, url: str, **kwargs):
        return self.client.get(url, headers=self.headers, **kwargs)

    def post(self, url: str, **kwargs):
        return self.client.post(url, headers=self.headers, **kwargs)

    def put(self, url: str, **kwargs):
        return self.client.put(url, headers=self.headers, **kwargs)

    def patch(self, url: str, **kwargs):
        return self.client.patch(url, headers=self.headers, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.client.delete(url, headers=self.headers, **kwargs)


@pytest.fixture
def sign_up(client: TestClient):
    """Sign a user in and create their profile."""

    def _sign_up(user_id: str, **profile) -> ApiUser:
        user = ApiUser(client, user_id)
        response = user.put("/api/profile", json={"username": user_id, **profile})
        assert response.status_code == 200, response.text
        return user

    return _sign_up
