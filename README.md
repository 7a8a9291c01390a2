# headless

Building blocks for clients that run unattended on a device and are managed
from a backend. The package covers four concerns:

- **Remote configuration.** `ConfigService` (`headless.config_service`) fetches
  a JSON configuration from a URL, polls it on an interval and keeps the newest
  version in a `Storage` (`InMemoryStorage` by default, or `FileStorage` for
  persistence across restarts). Environment variables with a chosen prefix can
  fill in keys the remote configuration leaves out.
- **Event reporting.** `new_event` and `new_event_from_error`
  (`headless.event`) build `Event` records. A `BufferedEmitter`
  (`headless.emitter`) collects them, and an `EventService`
  (`headless.event_service`) polls every registered `Producer` and posts the
  batch as a JSON array to an endpoint.
- **Self-updating.** `Updater` (`headless.updater`) fetches a `Manifest`
  (version, SHA-256, download URL), compares it with the running version,
  downloads the new binary through an `UpdateRequester`
  (`HttpUpdateRequester`, or `RangeUpdateRequester` for resumable chunked
  downloads), verifies the checksum and swaps the executable in place with
  `replace_binary`.
- **Ordered shutdown.** `LifecycleService` (`headless.lifecycle`) keeps every
  registered `Closer` and closes them in reverse order of registration with
  `close_all`, raising a single `CloseError` that reports every failure.

The package has no runtime dependencies outside the standard library. HTTP is
done with `urllib.request`; every service accepts an `opener` so another
`OpenerDirector` can be supplied.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Reading configuration values

`Config` holds a version string and a dictionary of properties. Its typed
accessors convert values where that makes sense and raise otherwise:

```python
from headless.config import Config, KeyNotFoundError

config = Config.from_dict({
    "version": "v1.0.0",
    "properties": {"port": "8080", "enabled": "yes", "rate": 1.5},
})

config.get_int("port")      # 8080
config.get_bool("enabled")  # True  ("true", "1", "yes" / "false", "0", "no")
config.get_float("rate")    # 1.5

try:
    config.get_string("missing")
except KeyNotFoundError:
    ...
```

- `KeyNotFoundError` (a `LookupError`) is raised when the key is absent.
- `WrongTypeError` (a `TypeError`) is raised when the stored value has a type
  the accessor does not accept.
- `ConversionError` (a `ValueError`) is raised when a string cannot be parsed
  into the requested type.

`get_string` also accepts bytes (decoded as UTF-8) and objects with their own
`__str__`; `get_int` truncates floats. `Config.to_dict()` returns the
JSON-ready form used on the wire and on disk.

## Storing configuration

```python
from headless.config_storage import FileStorage, InMemoryStorage

storage = FileStorage("/var/lib/myclient/config.json")
storage.get()           # None until something has been saved
storage.save(config)    # written to "<path>.tmp", then renamed into place
storage.get().version   # "v1.0.0"

memory = InMemoryStorage()
memory.save(config)
memory.get() is config  # True
```

`FileStorage.set` is the same as `save`. Both storages are safe to use from
several threads.

## Services

`ConfigService`, `EventService` and `Updater` each start a daemon thread when
constructed and expose `name()` and `close()`, so they can be registered with
a `LifecycleService` and shut down together. They are also context managers.
All intervals are in seconds.

```python
from headless.config_service import ConfigService
from headless.emitter import BufferedEmitter
from headless.event_service import EventService
from headless.lifecycle import LifecycleService
from headless.logger import std_logger_factory
from headless.updater import Updater

with LifecycleService(logger_factory=std_logger_factory) as lifecycle:
    configs = ConfigService("http://localhost:8080/config", logger_factory=std_logger_factory)
    lifecycle.register(configs)

    events = EventService("http://localhost:8080/events", logger_factory=std_logger_factory)
    lifecycle.register(events)

    updater = Updater(
        "dev",
        manifest_url="http://localhost:8080/manifest",
        emitter=BufferedEmitter(),
        executable_path="/opt/myclient/client",
    )
    events.register_producer(updater)
    lifecycle.register(updater)

    updater.listen_for_update_available(updater.apply_update)
    ...
```

### ConfigService

`ConfigService(url, ctx=None, *, extend_with_env_vars=False,
env_key_prefix=None, poll_interval=3600, initial_poll_delay=60, opener=None,
timeout=5, storage=None, logger_factory=None)`

- If the storage is empty at start-up, the configuration is fetched at once; a
  failure there is logged, not raised.
- `refresh()` fetches the remote configuration now. It is stored only when its
  version differs from the current one and its properties differ too.
- With `extend_with_env_vars`, every environment variable whose name starts
  with `env_key_prefix` is added under its name with the prefix removed and
  lower-cased, unless the key is already present.
- `current()` returns a copy of the active configuration, or `None`.

### Events

`new_event(ctx, event_type, *, message=None, data=None, error=None)` stamps a
fresh UUID, the current UTC time and the context's device id and client
version. `Event.to_dict()` uses camelCase keys (`deviceId`, `clientVersion`,
`isError`) and leaves `data` out when it is empty.

`BufferedEmitter(buffer_size=1024, drop_callback=None)` keeps up to
`buffer_size` events between polls; events pushed while it is full or after
`close()` are dropped and handed to `drop_callback`. `NoopEmitter` keeps
nothing.

`EventService(endpoint, ctx=None, *, flush_interval=60, request_builder=None,
opener=None, timeout=5, logger_factory=None)` calls `flush()` every
`flush_interval`. A flush polls every producer and sends one request; any
non-2xx response raises `RuntimeError`. `close()` also closes every
registered producer.

### Updater

`Updater(current_version="", ctx=None, *, manifest_url="",
update_requester=None, manifest_requester=None, poll_interval=3600,
initial_poll_delay=60, emitter=None, logger_factory=None,
executable_path=None, temp_dir=None)`

- When `current_version` is empty it is taken from the context's
  `ContextKey.CLIENT_VERSION`; if that is empty too, `ValueError` is raised.
- `trigger_update_check()` fetches the manifest; when its version differs from
  the running one it is handed to the `listen_for_update_available()`
  callbacks. The background poller stops after the first failed check.
- `apply_update(manifest)` downloads the release, checks its SHA-256 when the
  manifest gives one, and replaces the executable with `replace_binary`, which
  keeps a `.bak` copy until the swap succeeded and then sets mode `0o755`.
  Callbacks registered with `listen_for_update_applied()` receive the
  manifest afterwards.
- Without `executable_path`, the file replaced is `sys.executable`, the
  running Python interpreter; pass the path of the program to update.
- The events it records carry an `UpdateEventType` and are returned by
  `poll_events()`.

`RangeUpdateRequester(opener=None, temp_dir="", chunk_size=2 MiB,
target_perms=0o600, timeout=None)` learns the size from a HEAD request,
downloads `update-<version>.tmp` in ranged chunks, resumes a partial file left
by an earlier attempt, and returns an `AutoDeleteFile` that removes the file
when closed.

## Logging and context

Logging goes through the `Logger` interface: `debug`, `info`, `warn` and
`error` take a message followed by alternating keys and values. `NoOpLogger`
is the default. `std_logger_factory(ctx)` returns a `StdLogger` that writes
`msg key=value ...` lines at debug level to standard output through the
`headless` logger of the `logging` module, tagged with the service name,
device id and client version found in the context. `new_logger(ctx, factory)`
builds a logger from a factory, or a `NoOpLogger` when the factory is `None`.

A context is any mapping; `ContextKey` names the well-known keys and
`get_string_value(ctx, key)` returns the string under a key, or `""`.

## What the package does not do

It is a library only: it has no command-line program, and it provides no
backend. The configuration endpoint, the event endpoint and the manifest and
release downloads must be served by something else.