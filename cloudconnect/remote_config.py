"""The remote configuration descriptor: setting and state groups of the device."""

from __future__ import annotations

from typing import Iterable, Tuple

from .rci_types import (
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

FIRMWARE_TARGET_ZERO_VERSION = 0x1
VENDOR_ID = 0xFE080003
DEVICE_TYPE = "DEY device"

GLOBAL_ERRORS: Tuple[str, ...] = (
    "Bad command",
    "Bad configuration",
    "Bad value",
    "Bad value",
    "Invalid index",
    "Invalid name",
    "Missing name",
    "Load fail",
    "Save fail",
    "Insufficient memory",
    "Not implemented",
)

_CONN_TYPES = ("DHCP", "static")

_RO = ElementAccess.READ_ONLY
_RW = ElementAccess.READ_WRITE


def _item(element_type: ElementType, name: str, access: ElementAccess,
          enums: Iterable[str] = ()) -> Item:
    return Item(element_type, Element(name, access, tuple(enums)))


def _group(name: str, items: Iterable[Item], instances: int = 1) -> Group:
    return Group(
        Collection(
            name,
            CollectionType.FIXED_ARRAY,
            tuple(items),
            instances=instances,
        )
    )


def _setting_groups() -> Tuple[Group, ...]:
    ethernet = _group(
        "ethernet",
        (
            _item(ElementType.STRING, "iface_name", _RO),
            _item(ElementType.ON_OFF, "enabled", _RO),
            _item(ElementType.ENUM, "conn_type", _RO, _CONN_TYPES),
            _item(ElementType.STRING, "ipaddr", _RO),
            _item(ElementType.STRING, "netmask", _RO),
            _item(ElementType.STRING, "dns1", _RO),
            _item(ElementType.STRING, "dns2", _RO),
            _item(ElementType.STRING, "gateway", _RO),
            _item(ElementType.STRING, "mac_addr", _RO),
        ),
        instances=2,
    )
    wifi = _group(
        "wifi",
        (
            _item(ElementType.STRING, "iface_name", _RO),
            _item(ElementType.ON_OFF, "enabled", _RO),
            _item(ElementType.STRING, "ssid", _RO),
            _item(ElementType.STRING, "wpa_status", _RO),
            _item(ElementType.ENUM, "conn_type", _RO, _CONN_TYPES),
            _item(ElementType.STRING, "ipaddr", _RO),
            _item(ElementType.STRING, "netmask", _RO),
            _item(ElementType.STRING, "dns1", _RO),
            _item(ElementType.STRING, "dns2", _RO),
            _item(ElementType.STRING, "gateway", _RO),
            _item(ElementType.STRING, "mac_addr", _RO),
        ),
    )
    static_location = _group(
        "static_location",
        (
            _item(ElementType.ON_OFF, "use_static_location", _RW),
            _item(ElementType.FLOAT, "latitude", _RW),
            _item(ElementType.FLOAT, "longitude", _RW),
            _item(ElementType.FLOAT, "altitude", _RW),
        ),
    )
    system_monitor = _group(
        "system_monitor",
        (
            _item(ElementType.ON_OFF, "enable_sysmon", _RW),
            _item(ElementType.UINT32, "sample_rate", _RW),
            _item(ElementType.UINT32, "n_dp_upload", _RW),
        ),
    )
    system = _group(
        "system",
        (
            _item(ElementType.STRING, "description", _RW),
            _item(ElementType.STRING, "contact", _RW),
            _item(ElementType.STRING, "location", _RW),
        ),
    )
    return (ethernet, wifi, static_location, system_monitor, system)


def _state_groups() -> Tuple[Group, ...]:
    device_state = _group(
        "device_state",
        (_item(ElementType.UINT32, "system_up_time", _RO),),
    )
    primary_interface = _group(
        "primary_interface",
        (
            _item(ElementType.STRING, "connection_type", _RO),
            _item(ElementType.STRING, "ip_addr", _RO),
        ),
    )
    gps_stats = _group(
        "gps_stats",
        (
            _item(ElementType.STRING, "latitude", _RO),
            _item(ElementType.STRING, "longitude", _RO),
        ),
    )
    device_information = _group(
        "device_information",
        (
            _item(ElementType.STRING, "dey_version", _RO),
            _item(ElementType.STRING, "kernel_version", _RO),
            _item(ElementType.STRING, "uboot_version", _RO),
            _item(ElementType.STRING, "hardware", _RO),
            _item(ElementType.STRING, "kinetis", _RO),
        ),
    )
    return (device_state, primary_interface, gps_stats, device_information)


def build_descriptor() -> RemoteConfigData:
    """Build the descriptor of all setting and state groups of the device."""
    return RemoteConfigData(
        group_tables={
            GroupType.SETTING: _setting_groups(),
            GroupType.STATE: _state_groups(),
        },
        error_table=GLOBAL_ERRORS,
        global_error_count=len(GLOBAL_ERRORS),
        firmware_target_zero_version=FIRMWARE_TARGET_ZERO_VERSION,
        vendor_id=VENDOR_ID,
        device_type=DEVICE_TYPE,
    )