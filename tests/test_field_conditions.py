import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.schemas.fields import FieldDefinition, Section
from app.services.field_conditions import is_field_visible, is_section_visible, visibility_map

KNOWN = {"a", "b", "c"}


def _field(field_id: str, **kwargs) -> FieldDefinition:
    return FieldDefinition(id=field_id, name=field_id, label=field_id.upper(), **kwargs)


class ConditionOperatorTests(unittest.TestCase):
    def test_no_condition_is_visible(self):
        self.assertTrue(is_field_visible(_field("b"), {}, KNOWN))

    def test_equals_and_not_equals(self):
        equals = _field("b", condition_field_id="a", condition_operator="equals", condition_value="X")
        not_equals = _field("c", condition_field_id="a", condition_operator="not_equals", condition_value="X")
        self.assertTrue(is_field_visible(equals, {"a": "X"}, KNOWN))
        self.assertFalse(is_field_visible(equals, {"a": "Y"}, KNOWN))
        self.assertFalse(is_field_visible(equals, {"a": "x"}, KNOWN))
        self.assertFalse(is_field_visible(equals, {}, KNOWN))
        self.assertFalse(is_field_visible(not_equals, {"a": "X"}, KNOWN))
        self.assertTrue(is_field_visible(not_equals, {"a": "Y"}, KNOWN))
        self.assertTrue(is_field_visible(not_equals, {}, KNOWN))

    def test_equals_does_not_coerce_non_strings(self):
        field = _field("b", condition_field_id="a", condition_operator="equals", condition_value="5")
        self.assertFalse(is_field_visible(field, {"a": 5}, KNOWN))

    def test_contains_is_case_insensitive_and_string_only(self):
        field = _field("b", condition_field_id="a", condition_operator="contains", condition_value="urgent")
        self.assertTrue(is_field_visible(field, {"a": "Very URGENT request"}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": "routine"}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": ["urgent"]}, KNOWN))
        self.assertFalse(is_field_visible(field, {}, KNOWN))

    def test_not_empty(self):
        field = _field("b", condition_field_id="a", condition_operator="not_empty")
        self.assertFalse(is_field_visible(field, {}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": None}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": ""}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": []}, KNOWN))
        self.assertTrue(is_field_visible(field, {"a": "value"}, KNOWN))
        self.assertTrue(is_field_visible(field, {"a": ["x"]}, KNOWN))
        self.assertTrue(is_field_visible(field, {"a": 0}, KNOWN))

    def test_unknown_operator_fails_open(self):
        field = _field("b", condition_field_id="a", condition_operator="greater_than", condition_value="3")
        self.assertTrue(is_field_visible(field, {"a": "1"}, KNOWN))

    def test_unknown_condition_field_fails_open(self):
        field = _field("b", condition_field_id="ghost", condition_operator="equals", condition_value="X")
        self.assertTrue(is_field_visible(field, {}, known_field_ids={"a", "b"}))

    def test_condition_on_field_outside_the_form_keeps_field_visible(self):
        orphan = _field("b", condition_field_id="ghost", condition_operator="equals", condition_value="X")
        self.assertEqual(visibility_map([_field("a"), orphan], {}), {"a": True, "b": True})
        with self.assertRaises(TypeError):
            is_field_visible(orphan, {})

    def test_visibility_is_idempotent(self):
        field = _field("b", condition_field_id="a", condition_operator="equals", condition_value="X")
        answers = {"a": "X"}
        first = is_field_visible(field, answers, KNOWN)
        self.assertEqual(first, is_field_visible(field, answers, KNOWN))
        self.assertEqual(answers, {"a": "X"})


class CombinedConditionTests(unittest.TestCase):
    def test_additional_conditions_and_logic(self):
        field = _field(
            "c",
            condition_field_id="a",
            condition_operator="equals",
            condition_value="X",
            additional_conditions=[{"field_id": "b", "operator": "not_empty"}],
        )
        self.assertFalse(is_field_visible(field, {"a": "X"}, KNOWN))
        self.assertTrue(is_field_visible(field, {"a": "X", "b": "filled"}, KNOWN))

    def test_additional_conditions_or_logic(self):
        field = _field(
            "c",
            condition_field_id="a",
            condition_operator="equals",
            condition_value="X",
            conditions_logic="or",
            additional_conditions=[{"field_id": "b", "operator": "equals", "value": "Y"}],
        )
        self.assertTrue(is_field_visible(field, {"a": "Z", "b": "Y"}, KNOWN))
        self.assertFalse(is_field_visible(field, {"a": "Z", "b": "Z"}, KNOWN))

    def test_hidden_section_hides_its_fields(self):
        section = Section(id="s1", label="Details", condition_field_id="a", condition_operator="equals", condition_value="yes")
        fields = [_field("a"), _field("b", section_id="s1"), _field("c")]
        self.assertFalse(is_section_visible(section, {"a": "no"}, KNOWN))
        hidden = visibility_map(fields, {"a": "no"}, [section])
        self.assertEqual(hidden, {"a": True, "b": False, "c": True})
        shown = visibility_map(fields, {"a": "yes"}, [section])
        self.assertTrue(shown["b"])
