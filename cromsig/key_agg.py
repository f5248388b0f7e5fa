#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Key aggregation and multi-signature address functions.

Key aggregation (MuSig, https://eprint.iacr.org/2018/068):
the public keys are sorted by their compressed SEC encoding, then

L = TaggedHash('KeyAgg list', P_1||...||P_n)
a_i = TaggedHash('KeyAgg coefficient', L||P_i) mod n
Q = a_1*P_1 + ... + a_n*P_n

The per-key coefficients a_i defeat rogue-key attacks,
i.e. a co-signer choosing its key as a function of the others' keys.

A t-of-n multi-signature address commits to every combination
of at least t signer keys: each combination is aggregated as above and
the compressed aggregated keys are the leaves of a Merkle tree.
Any session among t or more signers
thus produces a signature for a committed key.
The bech32 encoding of the 32 bytes Merkle root is the address,
the human readable part being the network one (e.g. 'cro').
"""

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, List, Sequence, Tuple, Union

from btclib.alias import Point, String
from btclib.b32 import power_of_2_base_conversion
from btclib.bech32 import _BECH32_1_CONST, decode, encode
from btclib.ec import bytes_from_point, multi_mult, secp256k1
from btclib.hashes import merkle_root, tagged_hash
from btclib.to_pub_key import PubKey
from btclib.utils import int_from_bits

from cromsig.exceptions import (
    InvalidPublicKey,
    InvalidSignerSet,
    InvalidThreshold,
    MultiSigValueError,
)
from cromsig.key_pair import point_from_pub_key, pub_key_bytes
from cromsig.network import Network, network_from_name
from cromsig.utils import short_hex

_LOGGER = logging.getLogger(__name__)


def _merkle_hash(data: bytes) -> bytes:
    return tagged_hash(b"MultiSig/merkle", data)


def sorted_pub_keys(pub_keys: Iterable[PubKey]) -> List[bytes]:
    """Return the canonically ordered compressed public keys.

    The canonical order is the lexicographic order
    of the 33 bytes compressed SEC encodings.
    Duplicate keys are rejected.
    """
    keys = [pub_key_bytes(pub_key) for pub_key in pub_keys]
    if len(set(keys)) != len(keys):
        raise InvalidSignerSet("duplicate public keys")
    return sorted(keys)


def check_threshold(threshold: int, n: int) -> None:
    "Raise InvalidThreshold if threshold is not an integer in 1..n."
    if (
        isinstance(threshold, bool)
        or not isinstance(threshold, int)
        or not 1 <= threshold <= n
    ):
        raise InvalidThreshold(f"invalid threshold: {threshold!r} not in 1..{n}")


@dataclass(frozen=True)
class KeyAggContext:
    "Aggregated key of a signer set, with the per-key coefficients."

    # sorted 33 bytes compressed public keys
    pub_keys: Tuple[bytes, ...]
    # key aggregation coefficients, same order as pub_keys
    coefficients: Tuple[int, ...]
    # aggregated point
    Q: Point

    @property
    def x_Q(self) -> int:
        "Return the x-only (BIP340) aggregated key."
        return self.Q[0]

    @property
    def g(self) -> int:
        "Return the factor that makes the aggregated key y-coordinate even."
        return secp256k1.n - 1 if self.Q[1] % 2 else 1

    @property
    def agg_pub_key(self) -> bytes:
        "Return the 33 bytes compressed aggregated key."
        return bytes_from_point(self.Q)

    @property
    def bip340_pub_key(self) -> bytes:
        "Return the 32 bytes x-only aggregated key."
        return self.x_Q.to_bytes(secp256k1.p_size, byteorder="big", signed=False)

    def coefficient(self, pub_key: PubKey) -> int:
        "Return the aggregation coefficient of a signer key."
        key = pub_key_bytes(pub_key)
        try:
            return self.coefficients[self.pub_keys.index(key)]
        except ValueError as e:
            raise InvalidSignerSet(f"not in signer set: {short_hex(key)}") from e


def _key_agg(keys: Sequence[bytes]) -> KeyAggContext:
    # keys are assumed to be sorted, valid, and duplicate-free
    ec = secp256k1
    L = tagged_hash(b"KeyAgg list", b"".join(keys))
    coefficients = tuple(
        int_from_bits(tagged_hash(b"KeyAgg coefficient", L + key), ec.nlen) % ec.n
        for key in keys
    )
    points = [point_from_pub_key(key) for key in keys]
    Q = multi_mult(coefficients, points)
    if Q[1] == 0:
        raise InvalidPublicKey("aggregated key is the infinity point")
    return KeyAggContext(tuple(keys), coefficients, Q)


def key_agg(pub_keys: Iterable[PubKey]) -> KeyAggContext:
    "Return the key aggregation context of the signer keys."
    keys = sorted_pub_keys(pub_keys)
    if not keys:
        raise InvalidSignerSet("no public keys to aggregate")
    return _key_agg(keys)


def multisig_leaves(pub_keys: Iterable[PubKey], threshold: int) -> List[bytes]:
    """Return the aggregated keys committed by a t-of-n address.

    One compressed aggregated key for each combination of
    the sorted keys with at least threshold keys:
    combinations are ordered by size first,
    then in lexicographic combination order.
    """
    keys = sorted_pub_keys(pub_keys)
    check_threshold(threshold, len(keys))
    return [
        _key_agg(combo).agg_pub_key
        for size in range(threshold, len(keys) + 1)
        for combo in combinations(keys, size)
    ]


def _address_from_leaves(leaves: Sequence[bytes], network: Union[str, Network]) -> str:
    hrp = network_from_name(network).hrp
    root = merkle_root(leaves, _merkle_hash)
    data = power_of_2_base_conversion(root, 8, 5)
    return encode(hrp, data, _BECH32_1_CONST).decode("ascii")


def derive_address(
    signer_pub_keys: Sequence[PubKey],
    self_pub_key: PubKey,
    threshold: int,
    network: Union[str, Network] = "mainnet",
) -> str:
    """Return the bech32 t-of-n multi-signature address.

    The address does not depend on the order of the signer keys.
    """
    keys = sorted_pub_keys(signer_pub_keys)
    if len(keys) < 2:
        raise InvalidSignerSet(f"not enough signers: {len(keys)}")
    self_key = pub_key_bytes(self_pub_key)
    if self_key not in keys:
        raise InvalidSignerSet(f"own key not in signer set: {short_hex(self_key)}")
    check_threshold(threshold, len(keys))

    leaves = multisig_leaves(keys, threshold)
    address = _address_from_leaves(leaves, network)
    _LOGGER.debug(
        "derived %d-of-%d address %s (%d leaves)",
        threshold,
        len(keys),
        address,
        len(leaves),
    )
    return address


def transfer_address(pub_key: PubKey, network: Union[str, Network] = "mainnet") -> str:
    "Return the single signer (1-of-1) address of a public key."
    return _address_from_leaves(multisig_leaves([pub_key], 1), network)


def root_from_address(
    address: String, network: Union[str, Network] = "mainnet"
) -> bytes:
    "Return the 32 bytes Merkle root committed by the address."
    hrp, data = decode(address, _BECH32_1_CONST)
    expected_hrp = network_from_name(network).hrp
    if hrp != expected_hrp:
        raise MultiSigValueError(f"invalid hrp: {hrp} instead of {expected_hrp}")
    root = bytes(power_of_2_base_conversion(data, 5, 8, False))
    if len(root) != 32:
        raise MultiSigValueError(f"invalid root size: {len(root)} bytes instead of 32")
    return root


def is_multisig_address_valid(
    address: String, network: Union[str, Network] = "mainnet"
) -> bool:
    "Return True if the address is well-formed for the network."
    try:
        root_from_address(address, network)
    except ValueError:
        return False
    return True
