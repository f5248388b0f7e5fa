#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Public key normalization and the signer KeyPair.

Public keys are exchanged among co-signers
as 33 bytes compressed SEC octets;
any btclib public key representation is accepted as input.
"""

import secrets
from dataclasses import dataclass, field
from typing import Optional, Type, TypeVar

from btclib import to_pub_key
from btclib.alias import Point
from btclib.ec import bytes_from_point, mult, secp256k1
from btclib.to_prv_key import PrvKey, int_from_prv_key
from btclib.to_pub_key import PubKey

from cromsig.exceptions import InvalidPublicKey


def point_from_pub_key(pub_key: PubKey) -> Point:
    """Return a verified-as-valid secp256k1 public key point.

    Off-curve points and the infinity point are rejected.
    """
    try:
        return to_pub_key.point_from_pub_key(pub_key, secp256k1)
    except (TypeError, ValueError) as e:
        raise InvalidPublicKey(f"not a public key: {pub_key!r}") from e


def pub_key_bytes(pub_key: PubKey) -> bytes:
    "Return the 33 bytes compressed SEC encoding of a valid public key."
    return bytes_from_point(point_from_pub_key(pub_key), secp256k1)


_KeyPair = TypeVar("_KeyPair", bound="KeyPair")


@dataclass(frozen=True)
class KeyPair:
    """Signer identity: a public key and, optionally, its private key.

    A KeyPair without private key can only describe a co-signer.
    """

    pub_key: Point
    prv_key: Optional[int] = field(default=None, repr=False, compare=False)

    def __init__(
        self,
        pub_key: PubKey,
        prv_key: Optional[PrvKey] = None,
        check_validity: bool = True,
    ) -> None:

        object.__setattr__(self, "pub_key", point_from_pub_key(pub_key))
        object.__setattr__(
            self, "prv_key", None if prv_key is None else int_from_prv_key(prv_key)
        )

        if check_validity:
            self.assert_valid()

    def assert_valid(self) -> None:
        if self.prv_key is not None and mult(self.prv_key) != self.pub_key:
            raise InvalidPublicKey("public key does not match private key")

    @property
    def has_prv_key(self) -> bool:
        return self.prv_key is not None

    @property
    def pub_key_bytes(self) -> bytes:
        "Return the 33 bytes compressed SEC public key."
        return bytes_from_point(self.pub_key)

    @classmethod
    def from_prv_key(cls: Type[_KeyPair], prv_key: PrvKey) -> _KeyPair:
        q = int_from_prv_key(prv_key)
        return cls(mult(q), q, check_validity=False)

    @classmethod
    def from_pub_key(cls: Type[_KeyPair], pub_key: PubKey) -> _KeyPair:
        return cls(pub_key)

    @classmethod
    def generate_random(cls: Type[_KeyPair]) -> _KeyPair:
        "Return a KeyPair with a fresh private key from the system CSPRNG."
        q = 1 + secrets.randbelow(secp256k1.n - 1)
        return cls.from_prv_key(q)
