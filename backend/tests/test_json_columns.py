"""
Tests for JSON-column handling on partial updates.
"""

import json

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, insert, select, text

from entity_api.models import Course, JSONText, SubscriptionPlan
from entity_api.schemas.billing import SubscriptionPlanCreate, SubscriptionPlanEdit
from entity_api.services.entity.json_columns import preprocess_json_fields, resolve_column_key
from entity_api.services.entity.repository import EntityRepository


@pytest.fixture
def plan_descriptor(kernel):
    return kernel.registry.lookup("SubscriptionPlan")


class TestResolveColumnKey:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("features", "features"),
            ("price_amount", "price_amount"),
            ("priceAmount", "price_amount"),
            ("ownerIds", "owner_ids"),
            ("deletedAt", "deleted_at"),
            ("nonsense", None),
        ],
    )
    def test_resolution(self, key, expected):
        assert resolve_column_key(SubscriptionPlan, key) == expected

    def test_inherited_columns_resolve_on_every_model(self):
        assert resolve_column_key(Course, "createdAt") == "created_at"


class TestPreprocess:
    def test_json_values_are_encoded(self, plan_descriptor):
        result = preprocess_json_fields(plan_descriptor, {"features": ["sso", "audit"]})
        assert result == {"features": json.dumps(["sso", "audit"])}

    def test_camel_case_keys_map_to_columns(self, plan_descriptor):
        result = preprocess_json_fields(plan_descriptor, {"ownerIds": ["u1"], "priceAmount": 900})
        assert result == {"owner_ids": '["u1"]', "price_amount": 900}

    def test_none_passes_through(self, plan_descriptor):
        result = preprocess_json_fields(plan_descriptor, {"features": None})
        assert result == {"features": None}

    def test_strings_are_encoded_like_any_value(self, plan_descriptor):
        result = preprocess_json_fields(plan_descriptor, {"features": "all"})
        assert result == {"features": '"all"'}

    def test_unknown_keys_are_left_alone(self, plan_descriptor):
        result = preprocess_json_fields(plan_descriptor, {"mystery": [1, 2]})
        assert result == {"mystery": [1, 2]}

    def test_input_is_not_mutated(self, plan_descriptor):
        updates = {"features": ["a"]}
        preprocess_json_fields(plan_descriptor, updates)
        assert updates == {"features": ["a"]}


class TestJsonColumnUpdates:
    def test_features_survive_partial_update(self, service, db_session):
        plan = service.create(
            db_session,
            "SubscriptionPlan",
            SubscriptionPlanCreate(name="Pro", price_amount=1900, features=["sso"]),
        )
        assert plan.features == ["sso"]

        service.update(db_session, "SubscriptionPlan", plan.id, SubscriptionPlanEdit(features=["sso", "audit"]))

        reloaded = service.get(db_session, "SubscriptionPlan", plan.id)
        assert reloaded.features == ["sso", "audit"]
        assert reloaded.price_amount == 1900

    def test_other_fields_leave_json_untouched(self, service, db_session):
        plan = service.create(
            db_session,
            "SubscriptionPlan",
            SubscriptionPlanCreate(name="Team", features=["seats"]),
        )

        service.update(db_session, "SubscriptionPlan", plan.id, SubscriptionPlanEdit(is_active=False))

        reloaded = service.get(db_session, "SubscriptionPlan", plan.id)
        assert reloaded.features == ["seats"]
        assert reloaded.is_active is False

    def test_string_value_round_trips_through_update(self, service, db_session, plan_descriptor):
        plan = service.create(
            db_session,
            "SubscriptionPlan",
            SubscriptionPlanCreate(name="Flat", features=["seats"]),
        )

        repo = EntityRepository(plan_descriptor, db_session)
        entity = repo.find_by_id(plan.id)
        repo.update(entity, preprocess_json_fields(plan_descriptor, {"features": "all"}))
        db_session.commit()

        stored = db_session.execute(
            text("SELECT features FROM subscription_plans WHERE id = :id"),
            {"id": plan.id.hex},
        ).scalar_one()
        assert stored == '"all"'
        assert repo.find_by_id(plan.id).features == "all"


class TestJSONText:
    """Column type encoding."""

    @pytest.fixture
    def values_table(self, engine):
        metadata = MetaData()
        table = Table(
            "json_values",
            metadata,
            Column("id", Integer, primary_key=True),
            Column("value", JSONText),
        )
        metadata.create_all(engine)
        try:
            yield table
        finally:
            metadata.drop_all(engine)

    @pytest.mark.parametrize("value", ["hello", "", ["a", 1], {"k": "v"}, 3, None])
    def test_values_round_trip(self, engine, values_table, value):
        with engine.begin() as conn:
            conn.execute(insert(values_table).values(id=1, value=value))
            assert conn.execute(select(values_table.c.value)).scalar_one() == value

    def test_strings_are_stored_as_json(self, engine, values_table):
        with engine.begin() as conn:
            conn.execute(insert(values_table).values(id=1, value="hello"))
            raw = conn.execute(text("SELECT value FROM json_values")).scalar_one()
        assert raw == '"hello"'
