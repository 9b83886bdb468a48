# gatewaycheck

Building blocks for conformance checks against a Gateway API
implementation. The package reads the run's options, sends HTTP
requests and captures what an echo backend saw, prepares manifests and
applies them to a cluster through a client you supply, and waits until
gateway classes, gateways, routes and pods reach the expected state.

Progress messages (creating, updating, deleting objects; readiness
checks) go to the standard `logging` module under the
`gatewaycheck.apply` and `gatewaycheck.helpers` loggers.

## Modules

### `gatewaycheck.config`

`parse_flags(argv=None)` reads command-line options into a frozen
`Flags` value. Each option may be written with one or two dashes:

- `--gateway-class NAME` → `Flags.gateway_class_name`, the GatewayClass
  to use (default `gateway-conformance`)
- `--debug [BOOL]` → `Flags.show_debug`, print request and response
  dumps (default off)
- `--cleanup-base-resources [BOOL]` → `Flags.cleanup_base_resources`,
  remove the base resources after the run (default on)

The boolean options given without a value mean true; an explicit value
must be one of `1`, `t`, `T`, `true`, `True`, `TRUE` or `0`, `f`, `F`,
`false`, `False`, `FALSE`.

```python
from gatewaycheck.config import parse_flags

flags = parse_flags(["--gateway-class", "my-class", "--debug"])
```

### `gatewaycheck.roundtripper`

- `Request(url, host="", protocol="", method="", headers=None)`
  describes a request to send; `headers` maps a name to a list of
  values, of which the first is sent.
- `CapturedRequest` is what the echo backend reports it received:
  `path`, `host`, `method`, `protocol`, `headers`, `namespace` and
  `pod`. `CapturedRequest.from_json(body)` builds one from the backend's
  JSON reply and raises `ValueError` if the body is not such a reply.
- `CapturedResponse` holds `status_code`, `content_length` (`-1` when
  unknown), `protocol` (for example `HTTP/1.1`) and `headers`.
- `RoundTripper` is the abstract interface; subclass it and implement
  `capture_round_trip(request)` to send requests your own way.
- `DefaultRoundTripper(debug=False, timeout=10.0)` sends the request
  with the standard library. The method defaults to `GET`, a non-empty
  `host` overrides the `Host` header, and redirects are followed. An
  HTTP error status is returned, not raised; network failures raise
  `OSError`. A body is read into the captured request only when the
  reply's `Content-Type` is `application/json`. With `debug` set, the
  request and response are printed with each line prefixed by `"< "`.
- `format_dump(data, prefix)` puts `prefix` at the start of every line
  of a text or bytes dump.

### `gatewaycheck.apply`

`Client` is the abstract interface to a cluster, working on objects as
plain dictionaries:

- `get(kind, namespace, name)` returns an object or raises
  `NotFoundError`
- `list(kind, namespace)`, `create(obj)`, `update(obj)`, `delete(obj)`

`Applier(namespace_labels=None, valid_unique_listener_ports=None,
manifest_root=DEFAULT_MANIFEST_ROOT)` adjusts manifests before they are
applied:

- every `Gateway` gets the chosen `spec.gatewayClassName`; when
  `valid_unique_listener_ports` is non-empty, each listener of each
  Gateway, in order, gets the next port from that list, and running out
  of ports raises `ManifestError`;
- every core `Namespace` (no API group) gets `namespace_labels` merged
  over its own labels.

`Applier.prepare_resources(manifests, gateway_class_name)` parses a
multi-document YAML (or JSON) stream, skips empty documents and returns
the adjusted objects; malformed input raises `ManifestError`.

`Applier.must_apply_with_cleanup(client, location, gateway_class_name,
cleanup, stack)` loads the manifests at `location`, creates each object
that does not exist and updates each one that does (carrying over its
`resourceVersion`). With `cleanup` set, a deletion of each object is
registered on `stack`, a `contextlib.ExitStack`, and runs when it
closes.

`get_contents_from_path_or_url(location, manifest_root)` returns the
bytes of a manifest fetched from an `https://` URL or read from a
relative path under `manifest_root`. Plain `http://` is refused with
`ManifestError`, as are paths with empty, `.` or `..` segments.

```python
from contextlib import ExitStack
from gatewaycheck.apply import Applier

applier = Applier(valid_unique_listener_ports=[8000, 8001],
                  manifest_root="path/to/manifests")
with ExitStack() as stack:
    applier.must_apply_with_cleanup(client, "tests/route.yaml",
                                    "my-class", True, stack)
    ...  # objects are deleted when the block ends
```

### `gatewaycheck.helpers`

`poll_immediate(interval, timeout, condition)` checks `condition()` at
once and then every `interval` seconds, raising `WaitTimeoutError` when
`timeout` runs out; an exception from the condition stops polling and
propagates. The waits below poll once a second and raise
`WaitTimeoutError` with a message naming what they waited for:

- `gwc_must_be_accepted(client, gateway_class_name, seconds)` waits for
  the GatewayClass's `Accepted` condition to be `True` and returns its
  `spec.controllerName`.
- `namespaces_must_be_ready(client, namespaces, seconds)` waits until
  every Gateway in the namespaces is `Ready` and every Pod is either
  `Ready` or in phase `Succeeded`.
- `wait_for_gateway_address(client, gateway, seconds)` waits for an
  `IPAddress` entry in the Gateway's status and returns it joined with
  the first listener's port as `host:port` (IPv6 hosts in brackets). A
  Gateway without listeners raises `ValueError`.
- `http_route_must_have_parents(client, route, parents,
  namespace_required, seconds)` waits until the HTTPRoute's status
  parents match `parents` and returns them.
- `gateway_and_http_routes_must_be_ready(client, controller_name,
  gateway, *routes)` waits up to 180 seconds for the gateway address,
  then up to 60 seconds for each route to list the gateway as an
  `Accepted` parent; the namespace of the parent reference is required
  only for routes in another namespace. It returns the gateway address.
- `parents_match(expected, actual, namespace_required)` compares parent
  statuses in order: controller name, group, kind, name, namespace, and
  that every expected condition is present.
- `find_condition_in_list(conditions, name, value)` tells whether a
  condition of type `name` has status `value`.

Objects are named with `NamespacedName(namespace, name)`; route status
is described with `Condition`, `ParentReference` and
`RouteParentStatus`, each with a `from_dict` constructor for the
serialized form. `GATEWAY_GROUP` is the Gateway API group name.

## What the package does not do

- It has no command to run; `parse_flags` only reads options for code
  that drives a run.
- It contains no cluster client. You supply a `Client` implementation
  that talks to your cluster.
- It ships no manifests. Point `Applier.manifest_root` (or the
  `manifest_root` argument) at a directory of your own, or use
  `https://` locations.
- It does not itself repeat requests through a gateway until responses
  settle, compare them with expected backends, or organise checks into
  a suite; those are left to the code built on these pieces.

## Requirements

Python 3.10 or later and PyYAML. The tests use pytest
(`pip install .[test]`, then `pytest`).