"""Tests for the user collection service against a throwaway SQLite store."""

import math

import pytest

from profile_api.exceptions import DuplicateEmailError, RecordValidationError, UserNotFoundError
from profile_api.utils import as_utc


async def _create_many(service, count: int):
    return [await service.create({"name": f"User {i}", "email": f"user{i}@example.com"}) for i in range(count)]


async def test_create_then_get_returns_the_input_plus_generated_fields(service, jo_ann):
    created = await service.create(jo_ann)

    assert created.id
    assert created.created_at is not None
    assert created.updated_at is not None
    assert {k: getattr(created, k) for k in jo_ann} == jo_ann

    fetched = await service.get(created.id)
    assert fetched.model_dump(mode="json") == created.model_dump(mode="json")


async def test_create_rejects_invalid_input(service):
    with pytest.raises(RecordValidationError):
        await service.create({"name": "J", "email": "jo@x.com"})


async def test_create_rejects_duplicate_email_case_insensitively(service, jo_ann):
    await service.create(jo_ann)

    with pytest.raises(DuplicateEmailError):
        await service.create({"name": "Another Jo", "email": " JO@X.COM "})


async def test_unique_constraint_backs_up_the_lookup(service, jo_ann, monkeypatch):
    await service.create(jo_ann)

    async def nobody_owns(*args, **kwargs):
        return None

    monkeypatch.setattr(service, "_email_owner", nobody_owns)

    with pytest.raises(DuplicateEmailError):
        await service.create({"name": "Racing Jo", "email": "jo@x.com"})

    page = await service.list()
    assert page.total_users == 1


async def test_get_unknown_id_raises_not_found(service):
    with pytest.raises(UserNotFoundError):
        await service.get("does-not-exist")


async def test_list_pages_newest_first(service):
    users = await _create_many(service, 5)

    page = await service.list(page=1, limit=2)

    assert page.total_users == 5
    assert page.total_pages == 3
    assert page.current_page == 1
    assert [u.id for u in page.users] == [users[4].id, users[3].id]


async def test_list_pages_cover_every_record_exactly_once(service):
    users = await _create_many(service, 7)
    limit = 3

    first = await service.list(page=1, limit=limit)
    assert first.total_pages == math.ceil(7 / limit)

    seen = []
    for page_number in range(1, first.total_pages + 1):
        seen.extend((await service.list(page=page_number, limit=limit)).users)

    assert [u.id for u in seen] == [u.id for u in reversed(users)]
    created = [as_utc(u.created_at) for u in seen]
    assert created == sorted(created, reverse=True)


@pytest.mark.parametrize(("page", "limit"), [(None, None), (0, 0), (-3, -1)])
async def test_list_falls_back_to_defaults(service, page, limit):
    await _create_many(service, 12)

    result = await service.list(page=page, limit=limit)

    assert result.current_page == 1
    assert len(result.users) == 10
    assert result.total_pages == 2


async def test_list_on_empty_store(service):
    result = await service.list()

    assert result.users == []
    assert result.total_pages == 0
    assert result.total_users == 0


async def test_update_replaces_supplied_fields_and_bumps_updated_at(service, jo_ann):
    created = await service.create(jo_ann)

    updated = await service.update(created.id, {"name": "Joanne", "age": 35, "id": "hijack", "createdAt": "1999-01-01"})

    assert updated.id == created.id
    assert updated.name == "Joanne"
    assert updated.age == 35
    assert updated.email == jo_ann["email"]
    assert as_utc(updated.created_at) == as_utc(created.created_at)
    assert as_utc(updated.updated_at) > as_utc(created.updated_at)


async def test_update_always_advances_updated_at(service, jo_ann):
    created = await service.create(jo_ann)

    first = await service.update(created.id, {})
    second = await service.update(created.id, {})

    assert as_utc(created.updated_at) < as_utc(first.updated_at) < as_utc(second.updated_at)


async def test_update_can_clear_optional_fields(service, jo_ann):
    created = await service.create(jo_ann)

    updated = await service.update(created.id, {"city": None, "phone": None})

    assert updated.city is None
    assert updated.phone is None


async def test_update_rejects_email_owned_by_another_record(service, jo_ann):
    await service.create(jo_ann)
    other = await service.create({"name": "Sam", "email": "sam@x.com"})

    with pytest.raises(DuplicateEmailError):
        await service.update(other.id, {"email": "JO@x.com"})


async def test_update_keeping_own_email_is_allowed(service, jo_ann):
    created = await service.create(jo_ann)

    updated = await service.update(created.id, {"email": "Jo@X.com", "city": "Porto"})

    assert updated.email == "jo@x.com"
    assert updated.city == "Porto"


async def test_update_validates_before_writing(service, jo_ann):
    created = await service.create(jo_ann)

    with pytest.raises(RecordValidationError) as excinfo:
        await service.update(created.id, {"age": 200})

    assert excinfo.value.fields == ["age"]
    assert (await service.get(created.id)).age == jo_ann["age"]


async def test_update_unknown_id_raises_not_found(service):
    with pytest.raises(UserNotFoundError):
        await service.update("missing", {"name": "Nobody"})


async def test_delete_returns_snapshot_and_is_not_repeatable(service, jo_ann):
    created = await service.create(jo_ann)

    deleted = await service.delete(created.id)
    assert deleted.id == created.id
    assert deleted.email == created.email

    with pytest.raises(UserNotFoundError):
        await service.delete(created.id)
    with pytest.raises(UserNotFoundError):
        await service.get(created.id)


async def test_deleted_email_can_be_reused(service, jo_ann):
    created = await service.create(jo_ann)
    await service.delete(created.id)

    again = await service.create(jo_ann)

    assert again.id != created.id


async def test_search_matches_name_or_email_case_insensitively(service):
    ann = await service.create({"name": "Jo Ann", "email": "jo@x.com"})
    bob = await service.create({"name": "Bob", "email": "bob.annex@y.org"})
    await service.create({"name": "Carla", "email": "carla@z.net"})

    results = await service.search("ANN")

    assert [u.id for u in results] == [bob.id, ann.id]
    assert [u.id for u in await service.search("x.CoM")] == [ann.id]


async def test_search_blank_query_returns_nothing(service):
    await service.create({"name": "Jo Ann", "email": "jo@x.com"})

    assert await service.search("") == []
    assert await service.search("   ") == []
    assert await service.search(None) == []


async def test_search_treats_wildcards_literally(service):
    await service.create({"name": "Jo Ann", "email": "jo@x.com"})

    assert await service.search("%") == []
    assert await service.search("_") == []
