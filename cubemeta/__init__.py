"""Cube metastore: cubes, fact and dimension tables on a tabular catalog"""

__version__ = "0.1"

# Fix grako compatibility with Python 3.11+
import sys
import collections
if sys.version_info >= (3, 3):
    import collections.abc
    # Monkey-patch collections.Mapping and MutableMapping for grako compatibility
    if not hasattr(collections, 'Mapping'):
        collections.Mapping = collections.abc.Mapping
    if not hasattr(collections, 'MutableMapping'):
        collections.MutableMapping = collections.abc.MutableMapping

from .errors import *
from .logging import *
from .config import *
from .catalog import *
from .metadata import *
from .storage import *
from .metastore import *
