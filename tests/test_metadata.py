"""
Tests for the cube, fact table and dimension table models and their
catalog row representation.
"""

import json
import unittest

from pydantic import ValidationError

from cubemeta.catalog import CatalogTable, Column
from cubemeta.errors import (
    ArgumentError,
    MalformedMetadataError,
    NotFoundError,
    WrongEntityTypeError,
)
from cubemeta.metadata import (
    TABLE_TYPE_KEY,
    BaseDimension,
    ColumnMeasure,
    Cube,
    CubeTableType,
    DimensionTable,
    ExprMeasure,
    FactTable,
    HierarchicalDimension,
    InlineDimension,
    ReferencedDimension,
    TableReference,
    UpdatePeriod,
    classify_table,
)


def create_cube():
    return Cube(
        name="Orders",
        measures=[
            ColumnMeasure(name="amount", aggregate="sum"),
            ExprMeasure(name="margin", expr="amount * 2 + discount - tax", unit="EUR"),
        ],
        dimensions=[
            BaseDimension(name="region"),
            ReferencedDimension(name="customer", references="customer_dim.id"),
            InlineDimension(name="channel", values=["web", "store"]),
            HierarchicalDimension(
                name="location",
                hierarchy=[BaseDimension(name="country"), BaseDimension(name="city")],
            ),
        ],
        properties={"owner": "bi"},
    )


class ClassificationTestCase(unittest.TestCase):
    def test_classify(self):
        for value, expected in (
            ("CUBE", CubeTableType.CUBE),
            ("fact", CubeTableType.FACT),
            ("DIMENSION", CubeTableType.DIMENSION),
            ("VIEW", CubeTableType.OTHER),
        ):
            table = CatalogTable(name="t", parameters={TABLE_TYPE_KEY: value})
            self.assertIs(expected, classify_table(table).table_type)

        classified = classify_table(CatalogTable(name="plain"))
        self.assertIs(CubeTableType.OTHER, classified.table_type)
        self.assertEqual("plain", classified.name)

    def test_wrong_entity_type(self):
        row = create_cube().to_catalog_table()
        with self.assertRaises(WrongEntityTypeError) as cm:
            FactTable.from_catalog_table(row)
        self.assertEqual("FACT", cm.exception.expected)
        self.assertEqual("CUBE", cm.exception.actual)

        with self.assertRaises(WrongEntityTypeError):
            Cube.from_catalog_table(CatalogTable(name="plain"))


class CubeTestCase(unittest.TestCase):
    def setUp(self):
        self.cube = create_cube()

    def test_lookups(self):
        self.assertEqual("orders", self.cube.name)
        self.assertEqual(["amount", "margin"], self.cube.measure_names)
        self.assertTrue(self.cube.has_measure("AMOUNT"))
        self.assertTrue(self.cube.has_dimension("channel"))
        self.assertEqual("margin", self.cube.measure("Margin").name)
        self.assertIn("city", self.cube.all_field_names)
        self.assertEqual(
            {"amount", "discount", "tax"}, self.cube.measure("margin").dependencies
        )

        reference = self.cube.dimension("customer").references[0]
        self.assertEqual(TableReference(dest_table="customer_dim", dest_column="id"), reference)

    def test_missing_field_suggests_name(self):
        with self.assertRaisesRegex(NotFoundError, "Did you mean 'amount'"):
            self.cube.measure("amout")
        with self.assertRaises(NotFoundError) as cm:
            self.cube.dimension("date")
        self.assertEqual("dimension", cm.exception.kind)

    def test_duplicates(self):
        with self.assertRaises(ValidationError):
            Cube(name="c", measures=[ColumnMeasure(name="a"), ColumnMeasure(name="A")])
        with self.assertRaises(ValidationError):
            HierarchicalDimension(
                name="h", hierarchy=[BaseDimension(name="x"), BaseDimension(name="x")]
            )

    def test_modify(self):
        self.cube.add_measure(ColumnMeasure(name="quantity", type="int"))
        self.assertTrue(self.cube.has_measure("quantity"))
        self.cube.remove_dimension("channel")
        self.assertFalse(self.cube.has_dimension("channel"))

        with self.assertRaises(ArgumentError):
            self.cube.remove_measure("unknown")

    def test_measure_time_range(self):
        with self.assertRaises(ValidationError):
            ColumnMeasure(
                name="m", start_time="2024-02-01T00:00:00", end_time="2024-01-01T00:00:00"
            )

    def test_catalog_round_trip(self):
        row = self.cube.to_catalog_table()
        self.assertEqual("orders", row.name)
        self.assertEqual("CUBE", row.parameters[TABLE_TYPE_KEY])
        self.assertEqual("bi", row.parameters["owner"])

        measures = json.loads(row.parameters["cube.orders.measures"])
        self.assertEqual(["column", "expression"], [m["kind"] for m in measures])
        dimensions = json.loads(row.parameters["cube.orders.dimensions"])
        self.assertEqual(["customer_dim.id"], dimensions[1]["references"])

        loaded = Cube.from_catalog_table(row)
        self.assertEqual(self.cube, loaded)
        self.assertEqual({"owner": "bi"}, loaded.properties)
        self.assertIsInstance(loaded.measure("margin"), ExprMeasure)
        self.assertIsInstance(loaded.dimension("location"), HierarchicalDimension)

    def test_malformed_cube(self):
        row = self.cube.to_catalog_table()
        row.parameters["cube.orders.measures"] = "[{not json"
        with self.assertRaises(MalformedMetadataError) as cm:
            Cube.from_catalog_table(row)
        self.assertEqual("cube.orders.measures", cm.exception.key)

        del row.parameters["cube.orders.measures"]
        with self.assertRaises(MalformedMetadataError):
            Cube.from_catalog_table(row)


class FactTableTestCase(unittest.TestCase):
    def setUp(self):
        self.fact = FactTable(
            name="Sales",
            cube_names={"Orders"},
            columns=[("amount", "double"), ("region", "string", "Sales region")],
            storage_update_periods={"S1": ["hourly", "daily"], "s2": UpdatePeriod.MONTHLY},
            weight=10,
            properties={"owner": "bi"},
        )

    def test_attributes(self):
        self.assertEqual("sales", self.fact.name)
        self.assertEqual({"orders"}, self.fact.cube_names)
        self.assertEqual({"s1", "s2"}, self.fact.storages)
        self.assertEqual(
            {UpdatePeriod.HOURLY, UpdatePeriod.DAILY}, self.fact.update_periods("S1")
        )
        self.assertEqual("Sales region", self.fact.column("region").comment)

        with self.assertRaises(ArgumentError):
            self.fact.update_periods("s3")

    def test_requires_cube(self):
        with self.assertRaises(ValidationError):
            FactTable(name="f", cube_names=set())

    def test_storage_changes(self):
        self.fact.add_update_period("s2", UpdatePeriod.YEARLY)
        self.assertEqual(
            {UpdatePeriod.MONTHLY, UpdatePeriod.YEARLY}, self.fact.update_periods("s2")
        )
        self.fact.remove_update_period("s2", UpdatePeriod.MONTHLY)
        with self.assertRaises(ArgumentError):
            self.fact.remove_update_period("s2", UpdatePeriod.YEARLY)

        self.fact.drop_storage("s2")
        self.assertEqual({"s1"}, self.fact.storages)
        with self.assertRaises(ArgumentError):
            self.fact.drop_storage("s2")

    def test_columns(self):
        self.fact.add_column(Column(name="discount", type="double"))
        self.assertEqual(["amount", "region", "discount"], self.fact.column_names)
        self.fact.remove_column("region")
        self.assertEqual(["amount", "discount"], self.fact.column_names)

        with self.assertRaises(ValidationError):
            FactTable(name="f", cube_names="c", columns=[("a", "int"), ("A", "int")])

    def test_persisted_properties(self):
        props = self.fact.persisted_properties()
        self.assertEqual("FACT", props[TABLE_TYPE_KEY])
        self.assertEqual("orders", props["cube.fact.sales.cubenames"])
        self.assertEqual("s1,s2", props["cube.fact.sales.storages"])
        self.assertEqual("DAILY,HOURLY", props["cube.fact.sales.s1.updateperiods"])
        self.assertEqual("10.0", props["cube.fact.sales.weight"])

    def test_owned_properties_are_not_user_properties(self):
        self.fact.properties["cube.fact.sales.storages"] = "bogus"
        props = self.fact.persisted_properties()
        self.assertEqual("s1,s2", props["cube.fact.sales.storages"])

    def test_catalog_round_trip(self):
        loaded = FactTable.from_catalog_table(self.fact.to_catalog_table())
        self.assertEqual(self.fact, loaded)
        self.assertEqual({"owner": "bi"}, loaded.properties)

    def test_malformed_fact(self):
        row = self.fact.to_catalog_table()
        row.parameters["cube.fact.sales.cubenames"] = ""
        with self.assertRaises(MalformedMetadataError):
            FactTable.from_catalog_table(row)

        row = self.fact.to_catalog_table()
        del row.parameters["cube.fact.sales.s1.updateperiods"]
        with self.assertRaises(MalformedMetadataError) as cm:
            FactTable.from_catalog_table(row)
        self.assertEqual("cube.fact.sales.s1.updateperiods", cm.exception.key)

        row = self.fact.to_catalog_table()
        row.parameters["cube.fact.sales.s1.updateperiods"] = "HOURLY,SOMETIMES"
        with self.assertRaises(MalformedMetadataError):
            FactTable.from_catalog_table(row)


class DimensionTableTestCase(unittest.TestCase):
    def setUp(self):
        self.dim = DimensionTable(
            name="customer_dim",
            columns=[("id", "int"), ("name", "string"), ("country_id", "int")],
            dimension_references={"country_id": "country_dim.id"},
            snapshot_dump_periods={"s1": "hourly", "s2": None},
        )

    def test_attributes(self):
        self.assertEqual({"s1", "s2"}, self.dim.storages)
        self.assertTrue(self.dim.has_snapshots)
        self.assertIs(UpdatePeriod.HOURLY, self.dim.dump_period("s1"))
        self.assertIsNone(self.dim.dump_period("s2"))
        with self.assertRaises(ArgumentError):
            self.dim.dump_period("s3")

    def test_storages_without_snapshots(self):
        dim = DimensionTable(name="d", snapshot_dump_periods={"s1", "s2"})
        self.assertEqual({"s1", "s2"}, dim.storages)
        self.assertFalse(dim.has_snapshots)

    def test_references(self):
        self.dim.alter_reference("name", [TableReference.from_string("names.value")])
        self.assertEqual(["names.value"], [str(r) for r in self.dim.dimension_references["name"]])
        self.dim.remove_reference("name")
        with self.assertRaises(ArgumentError):
            self.dim.remove_reference("name")

        with self.assertRaises(ArgumentError):
            TableReference.from_string("no_column")

    def test_catalog_round_trip(self):
        row = self.dim.to_catalog_table()
        self.assertEqual("DIMENSION", row.parameters[TABLE_TYPE_KEY])
        self.assertEqual("HOURLY", row.parameters["cube.dimensiontable.customer_dim.s1.dumpperiod"])
        self.assertNotIn("cube.dimensiontable.customer_dim.s2.dumpperiod", row.parameters)

        loaded = DimensionTable.from_catalog_table(row)
        self.assertEqual(self.dim, loaded)

    def test_malformed_references(self):
        row = self.dim.to_catalog_table()
        row.parameters["cube.dimensiontable.customer_dim.references"] = '{"a": ["nodot"]}'
        with self.assertRaises(MalformedMetadataError):
            DimensionTable.from_catalog_table(row)


if __name__ == "__main__":
    unittest.main()
