"""
Cube metadata model.

Typed representations of cubes, fact tables and dimension tables and their
conversion to and from generic catalog rows.
"""

from .base import (
    TABLE_TYPE_KEY,
    AbstractCubeTable,
    ClassifiedTable,
    Column,
    CubeTableType,
    MetadataObject,
    classify_table,
)
from .cube import Cube
from .dimensions import (
    BaseDimension,
    CubeDimension,
    HierarchicalDimension,
    InlineDimension,
    ReferencedDimension,
    TableReference,
)
from .dimtable import DimensionTable
from .fact import FactTable
from .measures import ColumnMeasure, CubeMeasure, ExprMeasure
from .periods import UpdatePeriod, naive_utc

__all__ = [
    "TABLE_TYPE_KEY",
    "AbstractCubeTable",
    "ClassifiedTable",
    "Column",
    "CubeTableType",
    "MetadataObject",
    "classify_table",
    "Cube",
    "CubeDimension",
    "BaseDimension",
    "ReferencedDimension",
    "HierarchicalDimension",
    "InlineDimension",
    "TableReference",
    "DimensionTable",
    "FactTable",
    "CubeMeasure",
    "ColumnMeasure",
    "ExprMeasure",
    "UpdatePeriod",
    "naive_utc",
]
