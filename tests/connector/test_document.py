"""
Tests for dbspine.connector.document module.

Tests cover:
- DocumentBuilder setters and None handling
- Document immutability and lookups
- Value string forms
- Serialisation for the state blob
- Deletion markers
"""

from datetime import UTC, datetime

import pytest

from dbspine.connector.document import (
    ACTION_ADD,
    ACTION_DELETE,
    PROP_ACTION,
    PROP_CONTENT,
    PROP_DOCID,
    PROP_LAST_MODIFIED,
    Document,
    DocumentBuilder,
    Value,
    ValueType,
    delete_doc,
)


class TestDocumentBuilder:
    """Tests for DocumentBuilder."""

    def test_build_with_properties(self):
        doc = (
            DocumentBuilder()
            .set_property(PROP_DOCID, "abc")
            .set_property(PROP_ACTION, ACTION_ADD)
            .build()
        )
        assert doc.doc_id == "abc"
        assert doc.action == ACTION_ADD
        assert doc.property_names() == {PROP_DOCID, PROP_ACTION}

    def test_none_values_are_ignored(self):
        doc = (
            DocumentBuilder()
            .set_property("a", None)
            .set_last_modified("b", None)
            .set_binary_content("c", None)
            .set_values("d", [])
            .build()
        )
        assert doc.property_names() == frozenset()

    def test_later_set_replaces_earlier(self):
        doc = DocumentBuilder().set_property("a", "1").set_property("a", "2").build()
        assert doc.get_string("a") == "2"

    def test_builder_changes_do_not_leak_into_built_doc(self):
        builder = DocumentBuilder().set_property("a", "1")
        doc = builder.build()
        builder.set_property("b", "2")
        assert "b" not in doc


class TestDocument:
    """Tests for Document lookups and immutability."""

    def setup_method(self):
        self.stamp = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        self.doc = (
            DocumentBuilder()
            .set_property(PROP_DOCID, "id-1")
            .set_last_modified(PROP_LAST_MODIFIED, self.stamp)
            .set_binary_content(PROP_CONTENT, b"\x00\x01")
            .build()
        )

    def test_find_property_absent_is_none(self):
        assert self.doc.find_property("nope") is None
        assert self.doc.get_string("nope") is None

    def test_typed_values(self):
        assert self.doc.first_value(PROP_LAST_MODIFIED).type is ValueType.TIMESTAMP
        assert self.doc.get_string(PROP_LAST_MODIFIED) == self.stamp.isoformat()
        assert self.doc.first_value(PROP_CONTENT).data == b"\x00\x01"
        assert self.doc.get_string(PROP_CONTENT) == "AAE="

    def test_properties_are_read_only(self):
        with pytest.raises(TypeError):
            self.doc.properties["x"] = (Value.string("y"),)

    def test_attributes_are_frozen(self):
        with pytest.raises(AttributeError):
            self.doc.properties = {}

    def test_iteration_and_membership(self):
        assert set(self.doc) == {PROP_DOCID, PROP_LAST_MODIFIED, PROP_CONTENT}
        assert PROP_DOCID in self.doc

    def test_dict_round_trip_keeps_types(self):
        restored = Document.from_dict(self.doc.to_dict())
        assert restored.first_value(PROP_LAST_MODIFIED).data == self.stamp
        assert restored.first_value(PROP_CONTENT).data == b"\x00\x01"
        assert restored.doc_id == "id-1"


class TestDeleteDoc:
    def test_delete_marker(self):
        doc = delete_doc("gone")
        assert doc.doc_id == "gone"
        assert doc.action == ACTION_DELETE
        assert doc.property_names() == {PROP_DOCID, PROP_ACTION}
