"""
Tests for odata_inspector.metadata module.
"""

import logging

import pytest

from odata_inspector.metadata.edm import (
    escape_odata_literal,
    format_key_literal,
    is_quoted,
    lookup,
    within_bounds,
)
from odata_inspector.metadata.model import ReferentialConstraint, unqualify
from odata_inspector.metadata.parser import MetadataParseError, SchemaParser, detect_odata_version
from odata_inspector.metadata.xmlutil import strip_ns


def _schema_doc(body: str, namespace: str = "Test") -> str:
    return (
        '<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">'
        '<edmx:DataServices m:DataServiceVersion="2.0" '
        'xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">'
        f'<Schema Namespace="{namespace}" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">'
        f"{body}"
        "</Schema></edmx:DataServices></edmx:Edmx>"
    )


class TestHelperFunctions:
    """Tests for small metadata helpers."""

    def test_escape_odata_literal(self):
        assert escape_odata_literal("O'Brien") == "O''Brien"
        assert escape_odata_literal("plain") == "plain"

    def test_strip_ns(self):
        assert strip_ns("{http://example.com}Tag") == "Tag"
        assert strip_ns("NoNamespace") == "NoNamespace"

    def test_unqualify(self):
        assert unqualify("Shop.Order") == "Order"
        assert unqualify("Collection(Shop.OrderItem)") == "OrderItem"
        assert unqualify("Order") == "Order"
        assert unqualify(None) is None
        assert unqualify("") is None


class TestEdmCatalog:
    """Tests for the primitive type catalog and key literals."""

    def test_lookup(self):
        assert lookup("Edm.Int32").category == "integer"
        assert lookup("Shop.Address") is None
        assert lookup(None) is None

    def test_within_bounds(self):
        assert within_bounds("Edm.Byte", 255)
        assert not within_bounds("Edm.Byte", 256)
        assert not within_bounds("Edm.Int16", "abc")
        assert within_bounds("Edm.String", "anything")

    def test_is_quoted(self):
        assert is_quoted("Edm.String")
        assert is_quoted("Edm.Guid")
        assert not is_quoted("Edm.Guid", "V4")
        assert is_quoted("Edm.String", "V4")
        assert not is_quoted("Edm.Int32")

    def test_numeric_literals_are_unquoted(self):
        assert format_key_literal(7, "Edm.Int32") == "7"
        assert format_key_literal("9007199254740993", "Edm.Int64") == "9007199254740993"
        assert format_key_literal(1.5, "Edm.Decimal") == "1.5"

    def test_string_literal_escaping(self):
        assert format_key_literal("x", "Edm.String") == "'x'"
        assert format_key_literal("O'Brien", "Edm.String") == "'O''Brien'"

    def test_v2_prefixed_literals(self):
        guid = "0f8fad5b-d9cb-469f-a165-70867728950e"
        assert format_key_literal(guid, "Edm.Guid") == f"guid'{guid}'"
        assert format_key_literal("2020-01-01T00:00:00", "Edm.DateTime") == "datetime'2020-01-01T00:00:00'"
        assert format_key_literal("PT1H", "Edm.Time") == "time'PT1H'"

    def test_wire_dates_become_iso(self):
        assert format_key_literal("/Date(1577836800000)/", "Edm.DateTime") == "datetime'2020-01-01T00:00:00'"
        assert format_key_literal("/Date(1577836800123)/", "Edm.DateTime") == "datetime'2020-01-01T00:00:00.123'"
        assert (
            format_key_literal("/Date(1577836800000+0060)/", "Edm.DateTimeOffset")
            == "datetimeoffset'2020-01-01T01:00:00+01:00'"
        )
        assert format_key_literal("/Date(0)/", "Edm.DateTimeOffset") == "datetimeoffset'1970-01-01T00:00:00Z'"
        # only temporal keys are converted
        assert format_key_literal("/Date(0)/", "Edm.String") == "'/Date(0)/'"

    def test_v4_canonical_literals(self):
        guid = "0f8fad5b-d9cb-469f-a165-70867728950e"
        assert format_key_literal(guid, "Edm.Guid", "V4") == guid
        assert format_key_literal("2020-01-01", "Edm.Date", "V4") == "2020-01-01"
        assert format_key_literal("x", "Edm.String", "V4") == "'x'"

    def test_boolean_and_null(self):
        assert format_key_literal(True, "Edm.Boolean") == "true"
        assert format_key_literal("False", "Edm.Boolean") == "false"
        assert format_key_literal(None, "Edm.String") == "null"

    def test_untyped_values(self):
        assert format_key_literal(5) == "5"
        assert format_key_literal("abc") == "'abc'"
        assert format_key_literal(False) == "false"


class TestVersionDetection:
    """Tests for detect_odata_version."""

    def test_v2(self, v2_metadata_xml):
        assert detect_odata_version(v2_metadata_xml) == "V2"

    def test_v4(self, v4_metadata_xml):
        assert detect_odata_version(v4_metadata_xml) == "V4"

    def test_v3_from_data_service_version(self):
        xml_text = _schema_doc("").replace('DataServiceVersion="2.0"', 'DataServiceVersion="3.0"')
        assert detect_odata_version(xml_text) == "V3"

    def test_text_fallback_for_broken_xml(self):
        assert detect_odata_version('<broken Version="4.0"') == "V4"

    def test_unknown(self):
        assert detect_odata_version("nothing here") == "Unknown"


class TestSchemaParser:
    """Tests for SchemaParser on OData V2 documents."""

    def test_entities_and_sets(self, v2_schema):
        assert v2_schema.namespace == "Shop"
        assert v2_schema.version == "V2"
        assert list(v2_schema.entities) == ["Order", "OrderItem", "Employee", "Pair"]
        assert list(v2_schema.entity_sets) == ["Orders", "OrderItems", "Employees", "Pairs"]
        assert v2_schema.entity_sets["Orders"].entity_type_name == "Shop.Order"

    def test_property_facets(self, v2_schema):
        order = v2_schema.entity("Order")
        customer = order.properties["Customer"]
        assert customer.edm_type == "Edm.String"
        assert customer.max_length == 40
        assert customer.unicode is False
        assert order.properties["OrderID"].nullable is False
        # MaxLength="Max" is not a number
        assert v2_schema.entity("OrderItem").properties["Product"].max_length is None

    def test_composite_key_order(self, v2_schema):
        assert v2_schema.entity("Pair").keys == ["A", "B"]

    def test_association_navigation(self, v2_schema):
        nav = v2_schema.entity("Order").navigation("Items")
        assert nav.target_entity_type_name == "OrderItem"
        assert nav.source_multiplicity == "1"
        assert nav.target_multiplicity == "*"
        assert nav.is_collection
        assert nav.referential_constraints == (ReferentialConstraint("OrderID", "OrderID"),)
        assert nav.relationship == "Shop.Order_Items"

    def test_self_referencing_association(self, v2_schema):
        employee = v2_schema.entity("Employee")
        manager = employee.navigation("Manager")
        reports = employee.navigation("Reports")
        assert manager.target_entity_type_name == "Employee"
        assert manager.target_multiplicity == "0..1"
        assert manager.referential_constraints == (ReferentialConstraint("ManagerID", "EmployeeID"),)
        assert reports.target_multiplicity == "*"
        assert reports.source_multiplicity == "0..1"
        assert reports.referential_constraints == (ReferentialConstraint("EmployeeID", "ManagerID"),)

    def test_constraints_are_immutable(self, v2_schema, v4_schema):
        for schema in (v2_schema, v4_schema):
            nav = schema.entity("Order").navigation("Items")
            assert isinstance(nav.referential_constraints, tuple)
            with pytest.raises(AttributeError):
                nav.referential_constraints.append(ReferentialConstraint("X", "Y"))

    def test_unresolved_relationship(self, v2_schema):
        ghost = v2_schema.entity("Order").navigation("Ghost")
        assert ghost.target_entity_type_name is None
        assert ghost.relationship == "Shop.Missing_Assoc"
        assert ghost.referential_constraints == ()

    def test_association_with_one_end_is_dropped(self, v2_schema):
        lonely = v2_schema.entity("Order").navigation("Lonely")
        assert lonely.target_entity_type_name is None

    def test_schema_lookups(self, v2_schema):
        assert v2_schema.entity("Shop.Order") is v2_schema.entity("Order")
        assert v2_schema.entity_type_for_set("Orders").name == "Order"
        assert v2_schema.entity_type_for_set("Nope") is None
        assert v2_schema.entity_set_for_type("OrderItem").name == "OrderItems"
        assert v2_schema.entity_set_for_type("Unknown") is None

    def test_to_dict(self, v2_schema):
        data = v2_schema.to_dict()
        assert data["entities"]["Order"]["keys"] == ["OrderID"]
        assert data["entity_sets"]["Pairs"]["entity_type_name"] == "Shop.Pair"

    def test_no_schema_raises(self):
        with pytest.raises(MetadataParseError):
            SchemaParser().parse("<root><Nothing/></root>")

    def test_malformed_xml_raises(self):
        with pytest.raises(MetadataParseError):
            SchemaParser().parse("<<not xml")

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            SchemaParser().parse("<root/>")

    def test_bare_schema_root(self):
        xml_text = (
            '<Schema Namespace="Bare" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">'
            '<EntityType Name="Thing"><Key><PropertyRef Name="Code"/></Key>'
            '<Property Name="Code" Type="Edm.String"/></EntityType>'
            "</Schema>"
        )
        schema = SchemaParser().parse(xml_text)
        assert schema.namespace == "Bare"
        assert schema.entity("Thing").keys == ["Code"]
        assert schema.version == "V2"

    def test_byte_order_mark_is_ignored(self, v2_metadata_xml):
        schema = SchemaParser().parse("\ufeff" + v2_metadata_xml)
        assert "Order" in schema.entities

    def test_dangling_key_is_dropped(self, caplog):
        xml_text = _schema_doc(
            '<EntityType Name="Half"><Key><PropertyRef Name="ID"/><PropertyRef Name="Missing"/></Key>'
            '<Property Name="ID" Type="Edm.Int32"/></EntityType>'
        )
        with caplog.at_level(logging.WARNING, logger="odata_inspector.metadata"):
            schema = SchemaParser().parse(xml_text)
        assert schema.entity("Half").keys == ["ID"]
        assert "Missing" in caplog.text

    def test_base_type_inheritance(self):
        xml_text = _schema_doc(
            '<EntityType Name="Base" Abstract="true"><Key><PropertyRef Name="ID"/></Key>'
            '<Property Name="ID" Type="Edm.Int32"/><Property Name="Name" Type="Edm.String"/></EntityType>'
            '<EntityType Name="Derived" BaseType="Test.Base">'
            '<Property Name="Extra" Type="Edm.String"/></EntityType>'
        )
        schema = SchemaParser().parse(xml_text)
        derived = schema.entity("Derived")
        assert derived.keys == ["ID"]
        assert list(derived.properties) == ["ID", "Name", "Extra"]
        assert derived.base_type == "Test.Base"
        assert schema.entity("Base").is_abstract

    def test_inheritance_cycle_does_not_recurse(self):
        xml_text = _schema_doc(
            '<EntityType Name="A" BaseType="Test.B"><Key><PropertyRef Name="ID"/></Key>'
            '<Property Name="ID" Type="Edm.Int32"/></EntityType>'
            '<EntityType Name="B" BaseType="Test.A"><Property Name="Other" Type="Edm.Int32"/></EntityType>'
        )
        schema = SchemaParser().parse(xml_text)
        assert set(schema.entities) == {"A", "B"}

    def test_multiple_schemas_use_first_namespace(self):
        xml_text = (
            '<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">'
            "<edmx:DataServices>"
            '<Schema Namespace="Types" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">'
            '<EntityType Name="Thing"><Key><PropertyRef Name="ID"/></Key>'
            '<Property Name="ID" Type="Edm.Int32"/></EntityType>'
            "</Schema>"
            '<Schema Namespace="Container" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">'
            '<EntityContainer Name="C"><EntitySet Name="Things" EntityType="Types.Thing"/></EntityContainer>'
            "</Schema>"
            "</edmx:DataServices></edmx:Edmx>"
        )
        schema = SchemaParser().parse(xml_text)
        assert schema.namespace == "Types"
        assert schema.entity_type_for_set("Things").name == "Thing"


class TestDialectEquivalence:
    """V2 associations and V4 inline navigations normalize to the same graph."""

    def test_v4_navigation(self, v4_schema):
        assert v4_schema.version == "V4"
        items = v4_schema.entity("Order").navigation("Items")
        assert items.target_entity_type_name == "OrderItem"
        assert items.target_multiplicity == "*"
        assert items.partner == "Order"

    def test_partner_supplies_source_multiplicity(self, v4_schema):
        assert v4_schema.entity("Order").navigation("Items").source_multiplicity == "1"
        assert v4_schema.entity("OrderItem").navigation("Order").source_multiplicity == "*"

    @pytest.mark.parametrize("entity,nav", [("Order", "Items"), ("OrderItem", "Order")])
    def test_same_graph(self, v2_schema, v4_schema, entity, nav):
        a = v2_schema.entity(entity).navigation(nav)
        b = v4_schema.entity(entity).navigation(nav)
        assert a.target_entity_type_name == b.target_entity_type_name
        assert a.source_multiplicity == b.source_multiplicity
        assert a.target_multiplicity == b.target_multiplicity
        assert a.referential_constraints == b.referential_constraints

    def test_same_keys_and_sets(self, v2_schema, v4_schema):
        for name in ("Order", "OrderItem"):
            assert v2_schema.entity(name).keys == v4_schema.entity(name).keys
        assert v4_schema.entity_set_for_type("OrderItem").name == "OrderItems"
