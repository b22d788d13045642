import pytest

from app.modules.uploads.service import avatar_extension, storage_path_from_url

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
BUCKET_URL = "https://fake.supabase.co/storage/v1/object/public/avatars"


def profile_of(fake, user_id):
    return next(p for p in fake.rows("user_profiles") if p["id"] == user_id)


class TestHelpers:
    def test_avatar_extension(self):
        assert avatar_extension("me.PNG", "image/png") == "png"
        assert avatar_extension("noext", "image/webp") == "webp"
        assert avatar_extension(None, "application/x-unknown") == "bin"

    def test_storage_path_from_url(self):
        assert storage_path_from_url(f"{BUCKET_URL}/u1/1.png", "avatars") == "u1/1.png"
        assert storage_path_from_url("https://cdn.example.com/u1/1.png", "avatars") is None


class TestUploadAvatar:
    @pytest.mark.asyncio
    async def test_upload_sets_profile_avatar(self, client, fake_supabase, member):
        response = await client.post(
            "/api/upload/avatar", headers=member.headers,
            files={"avatar": ("me.png", PNG, "image/png")},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["path"].startswith(f"{member.user_id}/")
        assert data["avatarUrl"] == f"{BUCKET_URL}/{data['path']}"
        assert profile_of(fake_supabase, member.user_id)["avatar_url"] == data["avatarUrl"]
        assert ("avatars", data["path"]) in fake_supabase.storage.files

    @pytest.mark.asyncio
    async def test_replacing_removes_previous_file(self, client, fake_supabase, member):
        fake_supabase.storage.files[("avatars", f"{member.user_id}/old.png")] = PNG
        profile_of(fake_supabase, member.user_id)["avatar_url"] = f"{BUCKET_URL}/{member.user_id}/old.png"

        response = await client.post(
            "/api/upload/avatar", headers=member.headers, files={"avatar": ("me.png", PNG, "image/png")},
        )
        assert response.status_code == 200
        assert fake_supabase.storage.removed == [f"{member.user_id}/old.png"]

    @pytest.mark.asyncio
    async def test_profile_failure_removes_uploaded_file(self, client, fake_supabase, member):
        fake_supabase.fail("user_profiles", "upsert")
        response = await client.post(
            "/api/upload/avatar", headers=member.headers, files={"avatar": ("me.png", PNG, "image/png")},
        )
        assert response.status_code == 500
        assert fake_supabase.storage.files == {}
        assert len(fake_supabase.storage.removed) == 1
        assert profile_of(fake_supabase, member.user_id)["avatar_url"] is None

    @pytest.mark.asyncio
    async def test_storage_failure(self, client, fake_supabase, member):
        fake_supabase.storage.fail_upload = True
        response = await client.post(
            "/api/upload/avatar", headers=member.headers, files={"avatar": ("me.png", PNG, "image/png")},
        )
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to upload file"
        assert fake_supabase.mutations("user_profiles") == []

    @pytest.mark.asyncio
    async def test_rejects_wrong_type(self, client, member):
        response = await client.post(
            "/api/upload/avatar", headers=member.headers,
            files={"avatar": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid file type")

    @pytest.mark.asyncio
    async def test_rejects_large_file(self, client, member):
        response = await client.post(
            "/api/upload/avatar", headers=member.headers,
            files={"avatar": ("big.png", b"\x00" * (5 * 1024 * 1024 + 1), "image/png")},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("File too large")

    @pytest.mark.asyncio
    async def test_missing_file(self, client, member):
        response = await client.post("/api/upload/avatar", headers=member.headers, data={"other": "x"})
        assert response.status_code == 400
        assert response.json()["error"] == "No file provided"

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.post("/api/upload/avatar", files={"avatar": ("me.png", PNG, "image/png")})
        assert response.status_code == 401


class TestDeleteAvatar:
    @pytest.mark.asyncio
    async def test_delete_clears_profile_and_file(self, client, fake_supabase, member):
        path = f"{member.user_id}/1.png"
        fake_supabase.storage.files[("avatars", path)] = PNG
        profile_of(fake_supabase, member.user_id)["avatar_url"] = f"{BUCKET_URL}/{path}"

        response = await client.delete("/api/upload/avatar", headers=member.headers)
        assert response.status_code == 200
        assert profile_of(fake_supabase, member.user_id)["avatar_url"] is None
        assert fake_supabase.storage.files == {}

    @pytest.mark.asyncio
    async def test_storage_failure_restores_avatar(self, client, fake_supabase, member):
        url = f"{BUCKET_URL}/{member.user_id}/1.png"
        profile_of(fake_supabase, member.user_id)["avatar_url"] = url
        fake_supabase.storage.fail_remove = True

        response = await client.delete("/api/upload/avatar", headers=member.headers)
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to delete file"
        assert profile_of(fake_supabase, member.user_id)["avatar_url"] == url

    @pytest.mark.asyncio
    async def test_no_avatar(self, client, member):
        response = await client.delete("/api/upload/avatar", headers=member.headers)
        assert response.status_code == 400
        assert response.json()["error"] == "No avatar to delete"

    @pytest.mark.asyncio
    async def test_foreign_url(self, client, fake_supabase, member):
        profile_of(fake_supabase, member.user_id)["avatar_url"] = "https://cdn.example.com/me.png"
        response = await client.delete("/api/upload/avatar", headers=member.headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid avatar URL"
