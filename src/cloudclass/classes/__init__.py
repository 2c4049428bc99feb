"""Configuration classes package.

This package contains the class definitions and the SimpleDB store that
persists them.
"""

from cloudclass.classes.definitions import CLASS_TYPES, class_type, default_classes
from cloudclass.classes.store import ClassStore, ClassNotFoundError, ClassDefinitionError

__all__ = [
    'CLASS_TYPES',
    'class_type',
    'default_classes',
    'ClassStore',
    'ClassNotFoundError',
    'ClassDefinitionError',
]
