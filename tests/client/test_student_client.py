"""Tests for StudentClient - the Python client tier against the real app over ASGI

Run: pytest tests/client/ -v
"""
import pytest
import httpx
from starlette.config import Config

from studentvault.client.student_client import (
    StudentClient,
    StudentClientError,
    StudentProfile,
    load_client_cipher,
)
from studentvault.errors import KeyConfigurationError
from studentvault.records.models import Student

ASHA = StudentProfile(
    full_name="Asha Verma",
    email="asha@example.edu",
    phone_number="+91-98765-43210",
    date_of_birth="2003-04-12",
    gender="female",
    address="12 MG Road, Pune",
    course_enrolled="B.Sc Computer Science",
)


def _client(app, client_cipher):
    return StudentClient(
        "http://testserver",
        client_cipher,
        transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.asyncio
async def test_register_login_and_read_back(app, client_cipher):
    async with _client(app, client_cipher) as client:
        registered = await client.register(ASHA, "Sup3rSecret!")
        assert registered["success"] is True

        login = await client.login("asha@example.edu", "Sup3rSecret!")
        assert client.access_token == login["accessToken"]

        students = await client.list_students()
        assert len(students) == 1
        student = students[0]
        assert student.full_name == "Asha Verma"
        assert student.course_enrolled == "B.Sc Computer Science"

        fetched = await client.get_student(student.id)
        assert fetched == student


@pytest.mark.asyncio
async def test_server_never_sees_plaintext(app, client_cipher):
    async with _client(app, client_cipher) as client:
        await client.register(ASHA, "Sup3rSecret!")

    with app.state.database.session() as db:
        row = db.query(Student).one()
    for value in (row.full_name, row.address, row.phone_number, row.password):
        assert "Asha" not in value
        assert "Pune" not in value
        assert "Sup3rSecret!" not in value


@pytest.mark.asyncio
async def test_update_and_delete(app, client_cipher):
    async with _client(app, client_cipher) as client:
        await client.register(ASHA, "Sup3rSecret!")
        await client.login("asha@example.edu", "Sup3rSecret!")
        student_id = (await client.list_students())[0].id

        updated = await client.update_student(student_id, address="221B Baker Street")
        assert updated.address == "221B Baker Street"
        assert updated.full_name == "Asha Verma"

        await client.update_student(student_id, password="N3wSecret!")
        await client.login("asha@example.edu", "N3wSecret!")

        await client.delete_student(student_id)
        with pytest.raises(StudentClientError) as exc:
            await client.get_student(student_id)
        assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(app, client_cipher):
    async with _client(app, client_cipher) as client:
        with pytest.raises(ValueError):
            await client.update_student("some-id", nickname="Ash")


@pytest.mark.asyncio
async def test_wrong_password_raises(app, client_cipher):
    async with _client(app, client_cipher) as client:
        await client.register(ASHA, "Sup3rSecret!")
        with pytest.raises(StudentClientError) as exc:
            await client.login("asha@example.edu", "wrong")
        assert exc.value.status_code == 401
        assert exc.value.detail["code"] == "INVALID_CREDENTIALS"
        assert client.access_token is None


@pytest.mark.asyncio
async def test_duplicate_registration_raises(app, client_cipher):
    async with _client(app, client_cipher) as client:
        await client.register(ASHA, "Sup3rSecret!")
        with pytest.raises(StudentClientError) as exc:
            await client.register(ASHA, "Another1!")
        assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_protected_calls_need_login(app, client_cipher):
    async with _client(app, client_cipher) as client:
        with pytest.raises(StudentClientError) as exc:
            await client.list_students()
        assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(app, client_cipher):
    async with _client(app, client_cipher) as client:
        await client.register(ASHA, "Sup3rSecret!")
        await client.login("asha@example.edu", "Sup3rSecret!")
        await client.refresh()
        assert client.access_token
        assert len(await client.list_students()) == 1


@pytest.mark.asyncio
async def test_refresh_without_login(app, client_cipher):
    async with _client(app, client_cipher) as client:
        with pytest.raises(StudentClientError):
            await client.refresh()


def test_load_client_cipher(client_key, client_cipher):
    cipher = load_client_cipher(Config(environ={"CLIENT_FIELD_KEY": client_key}))
    assert cipher.decrypt(client_cipher.encrypt("hello")) == "hello"


@pytest.mark.parametrize("environ", [{}, {"CLIENT_FIELD_KEY": "abc"}, {"CLIENT_FIELD_KEY": "zz" * 32}])
def test_load_client_cipher_fails_fast(environ):
    with pytest.raises(KeyConfigurationError):
        load_client_cipher(Config(environ=environ))


@pytest.mark.asyncio
async def test_overlong_password_never_sent(app, client_cipher, mocker):
    async with _client(app, client_cipher) as client:
        send = mocker.spy(client._http, "request")
        with pytest.raises(ValueError):
            await client.register(ASHA, "p" * 48)
        with pytest.raises(ValueError):
            await client.login("asha@example.edu", "p" * 48)
        send.assert_not_called()
