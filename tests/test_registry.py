"""Tests for the resource PHI field registry."""

from phivault.phi.registry import RESOURCE_PHI_FIELDS, get_path, get_phi_fields, set_path


class TestRegistry:
    """Test field lookup per resource type."""

    def test_every_type_scans_notes(self) -> None:
        for resource_type, specs in RESOURCE_PHI_FIELDS.items():
            assert "notes" in {spec.path for spec in specs}, resource_type

    def test_insurance_identifiers_whole_field(self) -> None:
        specs = {spec.path: spec for spec in get_phi_fields("insurance")}
        assert specs["policy_number"].strategy == "whole-field"
        assert specs["subscriber_name"].phi_type == "PERSON"

    def test_unknown_type(self) -> None:
        assert get_phi_fields("unknown") == ()


class TestPaths:
    """Test dotted path helpers."""

    def test_get_path(self) -> None:
        record = {"a": {"b": {"c": "x"}}, "n": 1}
        assert get_path(record, "a.b.c") == "x"
        assert get_path(record, "a.z") is None
        assert get_path(record, "n.x", default="d") == "d"

    def test_set_path_copies(self) -> None:
        record = {"a": {"b": "old"}}
        updated = set_path(record, "a.b", "new")
        assert updated == {"a": {"b": "new"}}
        assert record == {"a": {"b": "old"}}

    def test_set_path_creates_parents(self) -> None:
        assert set_path({}, "a.b", 1) == {"a": {"b": 1}}
