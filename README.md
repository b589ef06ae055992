# localcurrency

Building blocks for running community currencies. The package registers
communities at meetup locations and checks that meetup places are far
enough apart. It handles fixed-point balances with demurrage and rates
personhood from proofs of ceremony attendance.

## Installation

```
pip install localcurrency
```

The package uses only the standard library. To run the tests, install the
`test` extra and run `pytest`:

```
pip install "localcurrency[test]"
pytest
```

## What is in the package

| Module | Contents |
| --- | --- |
| `localcurrency.bs58` | Base58 `encode`, `decode` and `verify` (the alphabet check used for IPFS content ids) |
| `localcurrency.scale` | Compact binary encoding of integers, booleans, strings and vectors |
| `localcurrency.rng` | `RandomNumberGenerator`, a deterministic random stream built from a seed hash, and `blake2_256` |
| `localcurrency.permutation` | `random_permutation`, a seeded shuffle driven by the generator |
| `localcurrency.fixedpoint` | `I64F64`, a signed 64.64 fixed-point number, with JSON helpers `serialize_fixed`, `deserialize_fixed`, `serialize_array` and `deserialize_array` |
| `localcurrency.common` | `validate_ascii`, `validate_ipfs_cid` and `CeremonyPhaseType` |
| `localcurrency.community_types` | `Location`, `GeoHash`, `CommunityIdentifier`, `CommunityMetadata`, `CidName` and their validation errors |
| `localcurrency.balances` | `BalanceEntry`, `balance_to_u128` and `u128_to_balance` |
| `localcurrency.ceremonies` | `ClaimOfAttendance`, `ProofOfAttendance`, `Reputation`, `ParticipantType` and the assignment records |
| `localcurrency.bazaar` | `BusinessIdentifier`, `BusinessData` and `OfferingData` |
| `localcurrency.sybil` | `PersonhoodUniquenessRating`, `CallMetadata`, `SybilResponseCall` and `sibling_junction` |
| `localcurrency.geo` | `haversine_distance`, `solar_trip_time`, `is_valid_location` and `relevant_neighbor_buckets` |
| `localcurrency.registry` | `Communities`, the in-memory community registry, and `BalanceStore` |
| `localcurrency.rpc` | `CommunitiesRpc`, a cached query layer over a `CommunitiesRuntimeApi` and a key-value store |
| `localcurrency.oracle` | `PersonhoodOracle`, which turns proofs of attendance into a rating |

## Community identifiers

A community is identified by the five-character geohash of its first
location, followed by the base58 form of a CRC-32 checksum over its
encoded bootstrappers:

```python
from localcurrency.community_types import CommunityIdentifier, Location
from localcurrency.fixedpoint import I64F64

location = Location(lat=I64F64.from_num(48.669), lon=I64F64.from_num(-4.329))
cid = CommunityIdentifier.new(location, [])
print(cid)  # gbsuv7YXq9G

assert str(CommunityIdentifier.from_str("gbsuv7YXq9G")) == "gbsuv7YXq9G"
print(cid.to_json())  # {"geohash":"0x6762737576","digest":"0xffffffff"}
```

## Registering communities and meetup locations

`Communities` holds the registry state. Every call that changes state takes
the caller as its first argument. Only the configured master may make such
calls. Anyone else gets `BadOrigin`. Locations can be added or removed only
while the phase is `CeremonyPhaseType.REGISTERING`.

A location is refused in three cases:

- it lies outside ±78° latitude or on the dateline;
- it lies within 1,000 km of the dateline;
- the solar trip time to a nearby existing location is below
  `min_solar_trip_time_s`.

Refusals raise `CommunitiesError`, and its `kind` (an `ErrorKind`) says
what went wrong. Each successful call appends an `Event` to
`registry.events`.

```python
from localcurrency.community_types import CommunityMetadata, Location
from localcurrency.fixedpoint import I64F64
from localcurrency.registry import Communities

registry = Communities(master=b"alice", min_solar_trip_time_s=1, max_speed_mps=83)

home = Location(lat=I64F64.from_num(1), lon=I64F64.from_num(1))
cid = registry.new_community(
    b"alice", home, [b"alice", b"bob", b"charlie"], CommunityMetadata(), None, None
)

registry.add_location(
    b"alice", cid, Location(lat=I64F64.from_num(2), lon=I64F64.from_num(2))
)
print(registry.get_locations(cid))
```

Balances live in a `BalanceStore`: `issue`, `balance_entry`,
`demurrage_per_block` and `purge_balances`. `remove_community` drops a
community's locations, metadata and balances.

## Balances

Balances are `I64F64` values. They convert to and from integers with 18
decimal places:

```python
from localcurrency.balances import balance_to_u128, u128_to_balance
from localcurrency.fixedpoint import I64F64

units = balance_to_u128(I64F64.from_num(123.456))  # about 123_456_000_000_000_000_000
value = u128_to_balance(1_000_000_000_000_000_000)  # 1.0
```

## Cached queries

`CommunitiesRpc` answers `communities_get_all` and
`communities_get_locations` from a mutable mapping of bytes to bytes. When
the dirty bit is set, it first refreshes that cache from a
`CommunitiesRuntimeApi` implementation that you supply.
`communities_get_all_balances` is refused with `PermissionError` when
`deny_unsafe` is true. Failures raise subclasses of `RpcError`, and
`to_error_object()` gives the JSON-RPC error code and message.

## Personhood ratings

`PersonhoodOracle.verify` counts the proofs of attendance that are valid.
A proof counts only if:

- its community is known;
- the attendee's reputation is `Reputation.VERIFIED_UNLINKED`;
- the signature verifier accepts it.

The rating also records how many ceremonies back the oldest counted proof
lies. `issue_personhood_uniqueness_rating` decodes a request, rates it and
hands the response to your `sender` callable. It then records an
`OracleEvent` for success or for failure.

## Deterministic randomness

```python
from localcurrency.permutation import random_permutation
from localcurrency.rng import RandomNumberGenerator, blake2_256

rng = RandomNumberGenerator(blake2_256(b"my_seed"), blake2_256)
print(random_permutation(list(range(1, 11)), rng))
```

The same seed always gives the same sequence, so every participant computes
the same result.

## What the package does not do

- It has no signature cryptography. Checking a claim or proof signature
  means passing in a verifier callable.
- It has no persistent storage. The registry and the balance store keep
  everything in memory, and the query cache uses whatever mapping you give
  it.
- It has no network server, transport or command-line program. The query
  layer and the oracle are plain Python objects that you call directly. The
  oracle's response is handed to your callable rather than sent anywhere.
- It does not price or meter registry calls.