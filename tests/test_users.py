import pytest
from pydantic import ValidationError

from repository import UserRepository


def _payload(**overrides) -> dict:
    payload = {"name": "Ada", "surname": "Lovelace", "email": "Ada@Lovelace.ORG"}
    payload.update(overrides)
    return payload


def test_create_user_normalizes_email_and_defaults_age(db) -> None:
    users = UserRepository(db)
    user_id = users.create(_payload(professions=["mathematician"]))

    user = users.get(str(user_id))
    assert user["email"] == "ada@lovelace.org"
    assert user["age"] == 18
    assert user["professions"] == ["mathematician"]
    assert user["purchase_history"] == []
    assert user["created_at"]


def test_purchase_history_entries_are_kept_in_order(db) -> None:
    users = UserRepository(db)
    history = [
        {"id": "p1", "name": "Mug", "price": 5, "category": "home", "date": "2024-03-01T10:00:00"},
        {"id": "p2", "name": "Lamp", "price": 30, "category": "home", "date": "2024-03-02T10:00:00"},
    ]
    user = users.get(str(users.create(_payload(age=40, purchase_history=history))))
    assert [p["id"] for p in user["purchase_history"]] == ["p1", "p2"]
    assert user["purchase_history"][1]["price"] == 30


@pytest.mark.parametrize("age", [17, 66])
def test_age_out_of_range_is_rejected_not_clamped(db, age: int) -> None:
    with pytest.raises(ValidationError):
        UserRepository(db).create(_payload(age=age))
    assert db["user"].count_documents({}) == 0


def test_required_fields(db) -> None:
    with pytest.raises(ValidationError):
        UserRepository(db).create({"name": "Ada", "email": "ada@lovelace.org"})


def test_unknown_user_id(db) -> None:
    assert UserRepository(db).get("nope") is None
