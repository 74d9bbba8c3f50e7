"""
Tests for storage table naming, storage tables and latest partition markers.
"""

import unittest
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cubemeta.catalog import CatalogTable, Column, MemoryCatalogStore, Partition, TableKind
from cubemeta.errors import ArgumentError, PartitionMarkerCorruptError
from cubemeta.metadata import FactTable, UpdatePeriod
from cubemeta.storage import (
    TIME_PART_COLUMNS_KEY,
    LatestPartColumnInfo,
    Storage,
    StoragePartitionDesc,
    StorageTableDescriptor,
    compute_latest_info,
    latest_part_filter,
    latest_part_spec,
    latest_part_timestamp_key,
    latest_part_update_period_key,
    marker_timestamp,
    storage_prefix,
    storage_table_name,
    time_part_columns,
)


class NamingTestCase(unittest.TestCase):
    def test_storage_table_name(self):
        self.assertEqual("s1_", storage_prefix("s1"))
        self.assertEqual("s1_sales", storage_table_name("Sales", storage_prefix("S1")))
        self.assertEqual("s1_sales", Storage(name="S1").storage_table_name("SALES"))

    def test_latest_keys(self):
        self.assertEqual(
            "cube.storagetable.ds.latest.part.timestamp", latest_part_timestamp_key("DS")
        )
        self.assertEqual(
            "cube.storagetable.ds.latest.part.updateperiod", latest_part_update_period_key("ds")
        )
        self.assertEqual("ds='latest'", latest_part_filter("ds"))
        self.assertEqual(
            {"ds": "latest", "region": "eu"},
            latest_part_spec({"ds": "2024-01-01", "region": "eu"}, "ds"),
        )


def marker(column, value, period):
    return Partition(
        table_name="s1_sales",
        spec={column: "latest"},
        parameters={
            latest_part_timestamp_key(column): value,
            latest_part_update_period_key(column): period,
        },
    )


class LatestInfoTestCase(unittest.TestCase):
    def setUp(self):
        self.table = CatalogTable(
            name="s1_sales",
            partition_columns=[Column(name="ds"), Column(name="pt")],
            parameters={TIME_PART_COLUMNS_KEY: "ds,pt"},
        )
        self.markers = {}

    def compute(self, timestamps, period=UpdatePeriod.HOURLY):
        return compute_latest_info(self.table, timestamps, period, self.markers.get)

    def test_no_time_partition_columns(self):
        table = CatalogTable(name="plain")
        self.assertIsNone(time_part_columns(table))
        self.assertIsNone(
            compute_latest_info(table, {"ds": datetime(2024, 1, 1)}, UpdatePeriod.DAILY, None)
        )

    def test_without_markers_every_column_advances(self):
        info = self.compute({"ds": datetime(2024, 1, 1, 10), "PT": datetime(2024, 1, 1, 9)})
        self.assertIn("ds", info)
        self.assertIn("pt", info)
        self.assertEqual(
            {
                latest_part_timestamp_key("ds"): "2024-01-01-10",
                latest_part_update_period_key("ds"): "HOURLY",
            },
            info.latest_parts["ds"].parameters,
        )

    def test_older_partition_keeps_marker(self):
        self.markers["ds"] = marker("ds", "2024-01-01-11", "HOURLY")
        info = self.compute({"ds": datetime(2024, 1, 1, 9), "pt": datetime(2024, 1, 1, 9)})
        self.assertNotIn("ds", info)
        self.assertIn("pt", info)

    def test_equal_timestamp_advances(self):
        self.markers["ds"] = marker("ds", "2024-01-01", "DAILY")
        info = self.compute({"ds": datetime(2024, 1, 1), "pt": datetime(2024, 1, 1)})
        self.assertEqual(
            "HOURLY", info.latest_parts["ds"].parameters[latest_part_update_period_key("ds")]
        )

    def test_marker_uses_its_own_update_period(self):
        self.markers["ds"] = marker("ds", "2024-02", "MONTHLY")
        info = self.compute({"ds": datetime(2024, 1, 31, 23), "pt": datetime(2024, 1, 1)})
        self.assertNotIn("ds", info)
        info = self.compute({"ds": datetime(2024, 2, 1, 1), "pt": datetime(2024, 1, 1)})
        self.assertIn("ds", info)

    def test_aware_timestamps_compare_in_utc(self):
        self.markers["ds"] = marker("ds", "2024-01-01-11", "HOURLY")
        cest = timezone(timedelta(hours=2))
        info = self.compute(
            {"ds": datetime(2024, 1, 1, 12, tzinfo=cest), "pt": datetime(2024, 1, 1)}
        )
        self.assertNotIn("ds", info)

        info = self.compute(
            {"ds": datetime(2024, 1, 1, 14, tzinfo=cest), "pt": datetime(2024, 1, 1)}
        )
        self.assertEqual(
            "2024-01-01-12",
            info.latest_parts["ds"].parameters[latest_part_timestamp_key("ds")],
        )

    def test_missing_timestamp(self):
        with self.assertRaises(ArgumentError):
            self.compute({"ds": datetime(2024, 1, 1)})

    def test_corrupt_marker(self):
        self.markers["ds"] = marker("ds", "yesterday", "HOURLY")
        with self.assertRaises(PartitionMarkerCorruptError) as cm:
            self.compute({"ds": datetime(2024, 1, 1), "pt": datetime(2024, 1, 1)})
        self.assertEqual("ds", cm.exception.column)
        self.assertEqual("yesterday", cm.exception.value)

        with self.assertRaises(PartitionMarkerCorruptError):
            marker_timestamp(marker("ds", "2024-01-01", "SOMETIMES"), "ds")

        missing = Partition(table_name="s1_sales", spec={"ds": "latest"})
        with self.assertRaises(PartitionMarkerCorruptError):
            marker_timestamp(missing, "ds")


class StorageTableTestCase(unittest.TestCase):
    def setUp(self):
        self.storage = Storage(name="S1")
        self.fact = FactTable(
            name="sales", cube_names="orders", columns=[("amount", "double")]
        ).to_catalog_table()

    def test_descriptor(self):
        desc = StorageTableDescriptor(
            partition_columns=[("ds", "string"), ("region", "string")],
            time_partition_columns="DS",
        )
        self.assertEqual(["ds"], desc.time_partition_columns)

        with self.assertRaises(ValidationError):
            StorageTableDescriptor(partition_columns=[("ds", "string")], time_partition_columns="dt")

    def test_get_storage_table(self):
        desc = StorageTableDescriptor(
            partition_columns=[("ds", "string")],
            time_partition_columns=["ds"],
            external=True,
            location="/warehouse/sales",
            table_parameters={"retention": "30"},
        )
        table = self.storage.get_storage_table(self.fact, desc)

        self.assertEqual("s1_sales", table.name)
        self.assertIs(TableKind.EXTERNAL, table.kind)
        self.assertEqual(["amount"], [c.name for c in table.columns])
        self.assertEqual(["ds"], table.partition_column_names)
        self.assertEqual("ds", table.parameters[TIME_PART_COLUMNS_KEY])
        self.assertEqual("30", table.parameters["retention"])
        self.assertEqual("/warehouse/sales", table.location)

    def test_partition_column_clash(self):
        desc = StorageTableDescriptor(partition_columns=[("amount", "double")])
        with self.assertRaises(ArgumentError):
            self.storage.get_storage_table(self.fact, desc)


class TestStorageAddPartition:
    def setup_method(self):
        self.store = MemoryCatalogStore()
        self.storage = Storage(name="s1")
        fact = FactTable(name="sales", cube_names="orders", columns=[("amount", "double")])
        desc = StorageTableDescriptor(
            partition_columns=[("ds", "string"), ("region", "string")],
            time_partition_columns="ds",
        )
        self.store.create_table(self.storage.get_storage_table(fact.to_catalog_table(), desc))

    def add(self, hour, region="eu"):
        desc = StoragePartitionDesc(
            cube_table_name="sales",
            update_period="hourly",
            time_part_spec={"DS": datetime(2024, 1, 1, hour)},
            non_time_part_spec={"region": region},
            parameters={"rows": "10"},
        )
        latest = compute_latest_info(
            self.store.get_table("s1_sales"),
            desc.time_part_spec,
            desc.update_period,
            lambda column: next(
                iter(self.store.get_partitions_by_filter("s1_sales", latest_part_filter(column))),
                None,
            ),
        )
        return self.storage.add_partition(self.store, desc, latest)

    def test_partition_spec(self):
        partition = self.add(10)
        assert partition.spec == {"ds": "2024-01-01-10", "region": "eu"}
        assert partition.parameters == {"rows": "10"}
        assert self.store.get_partition("s1_sales", partition.spec) == partition

    def test_single_marker_per_column(self):
        self.add(10, "eu")
        self.add(11, "us")
        self.add(9, "eu")

        markers = self.store.get_partitions_by_filter("s1_sales", "ds='latest'")
        assert len(markers) == 1
        assert markers[0].spec == {"ds": "latest", "region": "us"}
        assert markers[0].parameters[latest_part_timestamp_key("ds")] == "2024-01-01-11"
        assert self.store.get_num_partitions_by_filter("s1_sales", "ds!='latest'") == 3

    def test_marker_parameters(self):
        info = LatestPartColumnInfo.for_timestamp(
            "ds", datetime(2024, 1, 1, 10), UpdatePeriod.HOURLY
        )
        self.add(10)
        [latest] = self.store.get_partitions_by_filter("s1_sales", "ds='latest'")
        assert latest.parameters == info.parameters

    def test_aware_timestamps_are_stored_in_utc(self):
        desc = StoragePartitionDesc(
            cube_table_name="sales",
            update_period="hourly",
            time_part_spec={"ds": "2024-01-01T10:00:00Z"},
        )
        assert desc.time_part_spec["ds"] == datetime(2024, 1, 1, 10)
        assert desc.time_part_spec["ds"].tzinfo is None

        desc = StoragePartitionDesc(
            cube_table_name="sales",
            update_period="hourly",
            time_part_spec={"ds": datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))},
        )
        assert desc.time_partition_spec() == {"ds": "2024-01-01-10"}

    def test_partition_desc_requires_time_spec(self):
        with pytest.raises(ValidationError):
            StoragePartitionDesc(
                cube_table_name="sales", update_period="hourly", time_part_spec={}
            )
        with pytest.raises(ValidationError):
            StoragePartitionDesc(
                cube_table_name="sales",
                update_period="sometimes",
                time_part_spec={"ds": datetime(2024, 1, 1)},
            )


if __name__ == "__main__":
    unittest.main()
