"""Tests for apimap/commands/analyze/schemas.py."""

from apimap.commands.analyze.schemas import infer_body_schema, infer_schema, parse_json_bodies


class TestInferSchema:
    def test_object_required_keys(self) -> None:
        schema = infer_schema([{"id": 1, "name": "a"}, {"id": 2}])
        assert schema.type == "object"
        assert schema.properties is not None
        assert schema.properties["id"].type == "integer"
        assert schema.properties["name"].type == "string"
        assert schema.required == ["id"]

    def test_nested(self) -> None:
        schema = infer_schema([{"user": {"email": "a@b.com", "active": True}}])
        assert schema.properties is not None
        user = schema.properties["user"]
        assert user.type == "object"
        assert user.properties is not None
        assert user.properties["email"].format == "email"
        assert user.properties["active"].type == "boolean"

    def test_array_items(self) -> None:
        schema = infer_schema([[{"total": 9.5}], [{"total": 3.0}]])
        assert schema.type == "array"
        assert schema.items is not None
        assert schema.items.properties is not None
        assert schema.items.properties["total"].type == "number"

    def test_empty_array(self) -> None:
        schema = infer_schema([[]])
        assert schema.type == "array"
        assert schema.items is None

    def test_null(self) -> None:
        assert infer_schema([None]).type == "null"

    def test_scalar_example(self) -> None:
        schema = infer_schema(["2024-01-01T00:00:00Z"])
        assert schema.format == "date-time"
        assert schema.example == "2024-01-01T00:00:00Z"

    def test_formats(self) -> None:
        assert infer_schema(["2024-01-01"]).format == "date"
        assert infer_schema(["123e4567-e89b-12d3-a456-426614174000"]).format == "uuid"
        assert infer_schema(["https://example.com"]).format == "uri"
        assert infer_schema(["plain"]).format is None


class TestBodies:
    def test_non_json_skipped(self) -> None:
        assert parse_json_bodies(['{"a": 1}', "not json", "[1]"]) == [{"a": 1}, [1]]

    def test_no_json_body(self) -> None:
        assert infer_body_schema(["<html></html>"]) is None

    def test_body_schema(self) -> None:
        schema = infer_body_schema(['{"a": 1}'])
        assert schema is not None
        assert schema.type == "object"
