"""Descriptor types for remote configuration: elements, collections and groups."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

RCI_COMMANDS_ATTRIBUTE_MAX_LEN = 20
RCI_LIST_MAX_DEPTH = 1
RCI_DICT_MAX_KEY_LENGTH = 64

# Longest names used by the descriptor tables.
RCI_ELEMENTS_NAME_MAX_SIZE = 22
RCI_COLLECTIONS_NAME_MAX_SIZE = 19
RCI_VALUES_NAME_MAX_SIZE = 7


class ElementType(enum.IntEnum):
    """Value type of a configuration element."""

    STRING = 1
    MULTILINE_STRING = 2
    PASSWORD = 3
    INT32 = 4
    UINT32 = 5
    HEX32 = 6
    X_HEX32 = 7
    FLOAT = 8
    ENUM = 9
    ON_OFF = 11
    BOOLEAN = 12
    IPV4 = 13
    FQDNV4 = 14
    FQDNV6 = 15
    LIST = 17
    MAC_ADDR = 21
    DATETIME = 22
    REF_ENUM = 23


class RemoteAction(enum.IntEnum):
    """Action requested by a remote configuration session."""

    SET = 0
    QUERY = 1
    DO_COMMAND = 2
    REBOOT = 3
    SET_FACTORY_DEF = 4


class GroupType(enum.IntEnum):
    """Kind of configuration group."""

    SETTING = 0
    STATE = 1


class ElementAccess(enum.IntEnum):
    """Access rights of an element."""

    READ_ONLY = 0
    WRITE_ONLY = 1
    READ_WRITE = 2


class CollectionType(enum.IntEnum):
    """How the instances of a collection are addressed."""

    FIXED_ARRAY = 0
    VARIABLE_ARRAY = 1
    FIXED_DICTIONARY = 2
    VARIABLE_DICTIONARY = 3


@dataclass(frozen=True)
class Element:
    """A single configuration value."""

    name: str
    access: ElementAccess = ElementAccess.READ_WRITE
    enums: Tuple[str, ...] = ()
    default: Optional[object] = None


@dataclass(frozen=True)
class Item:
    """An entry of a collection: an element, or a nested list collection."""

    type: ElementType
    data: Union[Element, "Collection"]

    def __post_init__(self) -> None:
        wants_collection = self.type == ElementType.LIST
        if wants_collection and not isinstance(self.data, Collection):
            raise TypeError("a list item must hold a Collection")
        if not wants_collection and not isinstance(self.data, Element):
            raise TypeError("a non-list item must hold an Element")

    @property
    def name(self) -> str:
        return self.data.name


@dataclass(frozen=True)
class Collection:
    """A named set of items with a number of instances or dictionary keys."""

    name: str
    collection_type: CollectionType = CollectionType.FIXED_ARRAY
    items: Tuple[Item, ...] = ()
    instances: int = 1
    keys: Tuple[str, ...] = ()

    def find_item(self, name: str) -> Item:
        """Return the item called ``name``; raise KeyError if there is none."""
        for item in self.items:
            if item.name == name:
                return item
        raise KeyError(name)


@dataclass(frozen=True)
class Group:
    """A top-level collection together with its group-specific error texts."""

    collection: Collection
    errors: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.collection.name


@dataclass(frozen=True)
class RemoteConfigData:
    """The complete descriptor: group tables, error texts and device identity."""

    group_tables: Mapping[GroupType, Tuple[Group, ...]]
    error_table: Tuple[str, ...]
    global_error_count: int
    firmware_target_zero_version: int
    vendor_id: int
    device_type: str
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index = {
            (GroupType(group_type), group.name): group
            for group_type, groups in self.group_tables.items()
            for group in groups
        }
        object.__setattr__(self, "_by_name", index)

    def groups_of(self, group_type: GroupType) -> Tuple[Group, ...]:
        """Return the groups of ``group_type`` in table order."""
        return tuple(self.group_tables.get(GroupType(group_type), ()))

    def find_group(self, group_type: GroupType, name: str) -> Group:
        """Return the group of ``group_type`` called ``name``; raise KeyError if absent."""
        try:
            return self._by_name[(GroupType(group_type), name)]
        except KeyError:
            raise KeyError(name) from None

    def error_message(self, error_id: int) -> str:
        """Return the text of a global error; ids start at 1."""
        if not 1 <= error_id <= len(self.error_table):
            raise ValueError(f"unknown error id: {error_id}")
        return self.error_table[error_id - 1]