import pytest

from cloudconnect.rci_types import (
    Collection,
    CollectionType,
    Element,
    ElementAccess,
    ElementType,
    Group,
    GroupType,
    Item,
    RemoteConfigData,
)


def _descriptor():
    system = Collection(
        "system",
        CollectionType.FIXED_ARRAY,
        (
            Item(ElementType.STRING, Element("description")),
            Item(ElementType.STRING, Element("contact")),
        ),
    )
    uptime = Collection(
        "device_state",
        items=(Item(ElementType.UINT32, Element("system_up_time", ElementAccess.READ_ONLY)),),
    )
    return RemoteConfigData(
        group_tables={GroupType.SETTING: (Group(system),), GroupType.STATE: (Group(uptime),)},
        error_table=("Bad command", "Bad configuration", "Bad value"),
        global_error_count=3,
        firmware_target_zero_version=0x1,
        vendor_id=0xFE080003,
        device_type="DEY device",
    )


def test_items_built_from_wire_type_ids():
    assert Item(ElementType(11), Element("enabled")).type is ElementType.ON_OFF
    assert Item(ElementType(21), Element("mac_addr")).type is ElementType.MAC_ADDR
    assert Item(ElementType(17), Collection("entries")).type is ElementType.LIST


def test_find_item_returns_named_item():
    data = _descriptor()
    item = data.find_group(GroupType.SETTING, "system").collection.find_item("contact")
    assert item.name == "contact"
    assert item.type is ElementType.STRING


def test_find_item_missing_raises():
    collection = Collection("system")
    with pytest.raises(KeyError):
        collection.find_item("nothing")


def test_groups_of_keeps_order_and_separates_types():
    data = _descriptor()
    assert [g.name for g in data.groups_of(GroupType.SETTING)] == ["system"]
    assert [g.name for g in data.groups_of(GroupType.STATE)] == ["device_state"]


def test_find_group_wrong_type_raises():
    data = _descriptor()
    with pytest.raises(KeyError):
        data.find_group(GroupType.STATE, "system")


def test_error_message_is_one_based():
    data = _descriptor()
    assert data.error_message(1) == "Bad command"
    assert data.error_message(3) == "Bad value"


@pytest.mark.parametrize("error_id", [0, 4, -1])
def test_error_message_out_of_range(error_id):
    with pytest.raises(ValueError):
        _descriptor().error_message(error_id)


def test_item_type_must_match_data():
    with pytest.raises(TypeError):
        Item(ElementType.LIST, Element("x"))
    with pytest.raises(TypeError):
        Item(ElementType.STRING, Collection("x"))


def test_list_item_holds_collection():
    inner = Collection("inner", CollectionType.VARIABLE_ARRAY, instances=4)
    item = Item(ElementType.LIST, inner)
    assert item.name == "inner"
    assert item.data.instances == 4