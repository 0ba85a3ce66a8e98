"""
Tests for /api/v1/profiles/{id}/followers endpoints.
"""

from uuid import uuid4

from httpx import AsyncClient


class TestFollow:
    """POST /api/v1/profiles/{id}/followers tests."""

    async def test_follow_success(self, async_client: AsyncClient, test_profile: dict):
        response = await async_client.post(
            f"/api/v1/profiles/{test_profile['profile_id']}/followers",
            json={"name": "  Linus ", "email": "linus@example.com", "message": "Hi!"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["follower_name"] == "Linus"
        assert data["follower_email"] == "linus@example.com"

    async def test_invalid_email(self, async_client: AsyncClient, test_profile: dict):
        response = await async_client.post(
            f"/api/v1/profiles/{test_profile['profile_id']}/followers",
            json={"name": "Linus", "email": "not-an-email"},
        )
        assert response.status_code == 422

    async def test_blank_name(self, async_client: AsyncClient, test_profile: dict):
        response = await async_client.post(
            f"/api/v1/profiles/{test_profile['profile_id']}/followers",
            json={"name": "   ", "email": "linus@example.com"},
        )
        assert response.status_code == 422

    async def test_unknown_profile(self, async_client: AsyncClient):
        response = await async_client.post(
            f"/api/v1/profiles/{uuid4()}/followers",
            json={"name": "Linus", "email": "linus@example.com"},
        )
        assert response.status_code == 404


class TestListFollowers:
    """GET /api/v1/profiles/{id}/followers tests."""

    async def test_owner_sees_followers(
        self, async_client: AsyncClient, auth_headers, test_profile: dict
    ):
        url = f"/api/v1/profiles/{test_profile['profile_id']}/followers"
        await async_client.post(url, json={"name": "Linus", "email": "linus@example.com"})

        response = await async_client.get(url, headers=auth_headers(test_profile["profile_id"]))

        assert response.status_code == 200
        assert [f["follower_name"] for f in response.json()["followers"]] == ["Linus"]

    async def test_list_is_owner_only(
        self, async_client: AsyncClient, auth_headers, test_profile: dict, second_profile: dict
    ):
        url = f"/api/v1/profiles/{test_profile['profile_id']}/followers"

        assert (await async_client.get(url)).status_code == 401
        other = await async_client.get(url, headers=auth_headers(second_profile["profile_id"]))
        assert other.status_code == 403
