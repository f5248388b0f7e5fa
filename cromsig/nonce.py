#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Secret nonce of a multi-signature session signer.

It is the BIP340 nonce construction (see btclib.ecc.bip340_nonce)
domain separated by its own tag and bound to the aggregated key:

k = TaggedHash('MultiSig/nonce', q^TaggedHash('BIP0340/aux', aux)||x_Q||msg)

where q is the signer private key, x_Q the x-only aggregated key,
and aux 32 bytes of fresh randomness:
a signer never reuses a nonce, not even signing twice
the same message with the same signer set.
"""

from __future__ import annotations

import secrets

from btclib.alias import Octets
from btclib.ec import secp256k1
from btclib.hashes import tagged_hash
from btclib.to_prv_key import PrvKey, int_from_prv_key
from btclib.utils import bytes_from_octets, int_from_bits

NONCE_TAG = b"MultiSig/nonce"


def multisig_nonce_(
    msg_hash: Octets, prv_key: PrvKey, x_Q: int, aux: Octets | None = None
) -> int:
    """Return the secret nonce in 1..n-1.

    No negation is applied here: the final sign of the nonce
    depends on the aggregated nonce of all co-signers.
    """
    ec = secp256k1
    msg_hash = bytes_from_octets(msg_hash, 32)
    q = int_from_prv_key(prv_key, ec)
    aux = secrets.token_bytes(32) if aux is None else bytes_from_octets(aux, 32)

    mask = int.from_bytes(tagged_hash(b"BIP0340/aux", aux), "big", signed=False)
    t = (q ^ mask).to_bytes(ec.n_size, "big", signed=False)
    t += x_Q.to_bytes(ec.p_size, "big", signed=False) + msg_hash
    # rehash until the candidate is a valid scalar
    while True:
        t = tagged_hash(NONCE_TAG, t)
        k = int_from_bits(t, ec.nlen)
        if 0 < k < ec.n:
            return k
