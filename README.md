# cloudconnect

Building blocks for the device side of a cloud connector. It gives you
the local service protocol that other processes on the device use to
reach the cloud, a loopback request server, device request routing, data
point uploads, and the remote configuration descriptor with its state
group handlers.

## Installation

```
pip install cloudconnect
```

The tests need the `test` extra:

```
pip install "cloudconnect[test]"
pytest
```

## Modules

- `cloudconnect.strings`: text clean-up helpers. They are `trim`,
  `delete_quotes`, `delete_leading_spaces`, `delete_trailing_spaces` and
  `delete_newline_character`. Leading and trailing whitespace and
  non-printable characters count as blanks.
- `cloudconnect.protocol`: the line-based local wire format.
  - It has three kinds of value: integers (`i:42\n`), strings
    (`s:i:5\nhello\n`) and blobs (`b:i:3\nabc\n`).
  - `encode_uint32`, `encode_string` and `encode_blob` build the encoded
    bytes.
  - `ServiceStream` wraps a connected socket. It offers `read_uint32`,
    `read_string`, `read_blob`, `write_uint32`, `write_string`,
    `write_blob`, `send_ok` and `send_error`.
  - Bad framing, timeouts and closed connections raise `ProtocolError`.
  - `SendError` lists the results of a cloud upload, and
    `send_error_message` turns one into text.
- `cloudconnect.rci_types`: the remote configuration model.
  - The enums are `ElementType`, `RemoteAction`, `GroupType`,
    `ElementAccess` and `CollectionType`.
  - The frozen records are `Element`, `Item`, `Collection`, `Group` and
    `RemoteConfigData`.
  - For lookups there are `Collection.find_item`,
    `RemoteConfigData.groups_of`, `RemoteConfigData.find_group` and
    `RemoteConfigData.error_message`. Error ids start at 1.
- `cloudconnect.remote_config`: `build_descriptor()` returns the device's
  descriptor.
  - Setting groups: `ethernet` (2 instances), `wifi`, `static_location`,
    `system_monitor` and `system`.
  - State groups: `device_state`, `primary_interface`, `gps_stats` and
    `device_information`.
  - It also carries the global error texts, vendor id `0xFE080003` and
    device type `"DEY device"`.
- `cloudconnect.rci_state`: the state group handlers `DeviceState` and
  `GpsStats`.
  - `DeviceState.system_up_time` reports seconds since boot.
  - `GpsStats.latitude` and `GpsStats.longitude` report the `StaticLocation`
    you pass in, formatted with `%f`. They report `"0.0"` when the static
    location is off.
  - When a value cannot be produced they raise `RciStateError`, which
    carries an `RciError` id.
- `cloudconnect.primary_interface`: `PrimaryInterface(url, lookup)`. At
  `start()` it calls `lookup(url)`, which must return an `InterfaceInfo`.
  After that it reports `connection_type()` and `ip_addr()`.
- `cloudconnect.device_requests`: `DeviceRequestService` lets local
  processes register a target name and the TCP port they listen on.
  - It registers each target with a *receiver* object that you supply. The
    receiver has `add_target` and `remove_target` methods and raises
    `ReceiveFailed` on failure.
  - Requests for a target are forwarded to the registered process over the
    local protocol, and its reply is returned.
  - `handle_register` and `handle_unregister` serve the
    `register_devicerequest` and `unregister_devicerequest` requests.
  - `dump_requests` and `import_requests` save the registrations to a file
    and restore them.
  - `register_builtin_requests` adds a certificate update target.
  - `default_accept`, `default_data` and `default_status` answer requests
    for targets that nobody registered.
- `cloudconnect.dp_upload`: `handle_datapoint_file_upload(stream, sender)`
  serves the `upload_1_dp` request.
  - It reads metric or event blobs until the client sends the terminate
    type.
  - Each blob goes to `sender(cloud_path, content_type, data, timeout)`,
    which returns a `(SendError, hint)` pair.
  - Metrics go to `DataPoint/.csv` and events to `DeviceLog/EventLog.json`.
- `cloudconnect.services`: `RequestServer(handlers, host, port)` listens
  on a loopback port, 977 by default, in a background thread.
  - It reads a string tag from each connection and passes the
    `ServiceStream` to the handler registered for that tag.
  - `start` and `stop` control it, and it also works as a context manager.

## Example

Reading an encoded value:

```python
import socket
from cloudconnect.protocol import ServiceStream, encode_string

left, right = socket.socketpair()
left.sendall(encode_string("upload_1_dp"))
stream = ServiceStream(right, timeout=5)
assert stream.read_string() == "upload_1_dp"
```

Wiring the services together. Port `0` picks a free port, which is then
found in `server.address`:

```python
from functools import partial

from cloudconnect.device_requests import (
    REQ_TAG_REGISTER_DR, REQ_TAG_UNREGISTER_DR, DeviceRequestService,
)
from cloudconnect.dp_upload import REQ_TAG_DP_FILE_REQUEST, handle_datapoint_file_upload
from cloudconnect.protocol import SendError
from cloudconnect.services import RequestServer


class Receiver:
    def add_target(self, target, data_callback, status_callback, max_request_size):
        pass

    def remove_target(self, target):
        pass


def sender(cloud_path, content_type, data, timeout):
    return SendError.NONE, ""


requests = DeviceRequestService(Receiver())
handlers = {
    REQ_TAG_DP_FILE_REQUEST: partial(handle_datapoint_file_upload, sender=sender),
    REQ_TAG_REGISTER_DR: requests.handle_register,
    REQ_TAG_UNREGISTER_DR: requests.handle_unregister,
}
with RequestServer(handlers, port=0) as server:
    print("listening on", server.address)
```

## What this package does not do

- **No cloud connection.** It does not connect to the cloud itself. The
  receiver used by `DeviceRequestService` and the sender used by
  `handle_datapoint_file_upload` must be supplied by the caller.
- **No command.** It installs no command to run. You start a
  `RequestServer` from your own code.
- **No signal handling.** It provides no helpers for process signals.
- **No remote shell.** It has no interactive command-line sessions.
- **Unfilled groups.** The `device_information` state group and the
  setting groups appear in the descriptor, but the package has no handlers
  that fill in their values.