# ductoflags

Feature flags defined in JSON or YAML and evaluated against a context of
string key/value pairs. Flags can be loaded once from a file or an HTTP
endpoint, or kept up to date while your program runs. A command-line tool
evaluates or lists flags and can serve them over HTTP.

## Flag files

A flag file is an object mapping flag keys to definitions:

```yaml
new_ui:
  defaultVariant: dev
  variants:
    beta: 2
    stable: 4
    dev: 0
  rules:
    - if: { env: beta }
      variant: beta
    - if: { env: prod }
      variant: stable
    - percent: 10
      seed: user_id
      seed_hash: sha256
      variant: beta
```

Rules are checked in order and the first one that matches decides the
variant. A rule matches when every `if` entry equals the value in the
context and, if `percent` is set, the seed's bucket (0 to 99) is below it.
The bucket comes from hashing the context value named by `seed`, with
SHA-256 when `seed_hash` is `sha256` and FNV-1a otherwise. A `percent` of 0
or less, or a missing `seed`, never matches. The seed `HOSTNAME` falls back
to the machine's host name when the context lacks it. If no rule matches,
`defaultVariant` is used.

Evaluation gives an `EvaluationResult` with `variant`, `value`, `ok` (false
when the chosen variant is not in `variants`) and `matched` (true when a
rule decided it).

In YAML only `true`/`false` are booleans; words such as `yes`, `no`, `on`
and `off` stay strings, so they can be used as variant names. A file whose
name ends in `.yaml` or `.yml` is read as YAML, anything else as JSON.

## Library use

```python
from ductoflags.store import store_from_file

store = store_from_file("flags.yaml")
flag = store.get("new_ui")
if flag is not None:
    result = flag.evaluate({"env": "prod"})
    print(result.variant, result.value, result.ok, result.matched)
```

`ductoflags.store` also has `store_from_bytes(data, format)`,
`detect_format(path)` and `Store`, which wraps a dict of `Flag` objects.
Load failures raise `StoreLoadError`. `Flag` and `VariantRule` live in
`ductoflags.flags` and convert with `from_dict` / `to_dict`.

### Live updates

```python
from ductoflags.dynamic import DynamicStore
from ductoflags.file_provider import FileProvider

with DynamicStore(FileProvider("flags.json")) as store:
    flag = store.get("new_ui")
    ...
```

`DynamicStore` loads once on `start()` and then swaps in every update its
provider delivers; `stop()` ends the watching, and `last_updated()` tells
when the store last changed. `FileProvider` watches the file's directory
and reloads the file after it is written, created or moved into place; a
file that fails to parse is ignored and the last good flags stay in use.

`ductoflags.http_provider.HTTPProvider(url, token, interval)` polls a URL,
sending `Authorization: Bearer <token>` when a token is given and
`If-Modified-Since` after the first load; a 304 answer leaves the store as
it is. Error statuses raise `HTTPStatusError`. `store_from_url(url, token)`
fetches a store once.

### Typed resolution

`ductoflags.provider.DuctoProvider(store)` resolves typed values with
OpenFeature semantics through `resolve_boolean_details`,
`resolve_string_details`, `resolve_integer_details`,
`resolve_float_details` and `resolve_object_details`. Each returns a
`ResolutionDetail` with `value`, `variant`, `reason` (`DEFAULT` or
`TARGETING_MATCH`) and, on failure, an `error` whose code is
`FLAG_NOT_FOUND`, `PARSE_ERROR` or `TYPE_MISMATCH`, with the default value
returned. Only string entries of the evaluation context are used.

## Command line

Evaluate one flag, printing one JSON line with the key and the result:

```
ducto-flags -file flags.json -key new_ui -ctx env=prod
```

`-ctx key=value` may be repeated. List every flag as indented JSON:

```
ducto-flags -file flags.json -list
```

`-file` defaults to `flags.json`. Errors go to standard error with exit
code 1.

Serve flags over HTTP, reloading when the file changes:

```
ducto-flags serve -file flags.json -addr :8080 -token token
```

The server answers on `/api/flags`, `/api/flags.json` and `/api/flags.yaml`.
Without `key` it returns all flags; with `?key=name&env=prod` it returns the
`variant`, `value` and `reason` (`TARGETING_MATCH` or `FALLBACK`), or reason
`ERROR` with `error: flag not found`. With `-token`, requests must carry
`Authorization: Bearer <token>`. Responses carry `Last-Modified` and honour
`If-Modified-Since`. `SIGINT` or `SIGTERM` stops the server.

## What it does not do

`DuctoProvider` is a standalone resolver; it does not register itself with
an OpenFeature SDK client. The server is read-only and plain HTTP: there is
no API for changing flags and no TLS.