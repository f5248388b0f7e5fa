#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""MultiSigBuilder: the long-lived multi-signature identity of a co-signer.

It owns the local key pair, the co-signer public keys,
the network, and the threshold;
it derives the multi-signature address and
creates a new SignerSession for each message to be signed.
"""

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Optional, Sequence, Tuple, Union

from btclib.alias import Octets
from btclib.to_pub_key import PubKey

from cromsig.exceptions import InvalidSignerSet
from cromsig.key_agg import check_threshold, derive_address, sorted_pub_keys
from cromsig.key_pair import KeyPair, pub_key_bytes
from cromsig.network import Network, network_from_name
from cromsig.session import SignerSession, message_from_octets
from cromsig.utils import short_hex

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MultiSigBuilder:
    key_pair: KeyPair
    co_signer_pub_keys: Tuple[bytes, ...]
    network: Network
    threshold: int

    def __init__(
        self,
        key_pair: KeyPair,
        co_signer_pub_keys: Iterable[PubKey],
        network: Union[str, Network] = "mainnet",
        threshold: Optional[int] = None,
    ) -> None:

        if not key_pair.has_prv_key:
            raise InvalidSignerSet("own key pair has no private key")
        keys = tuple(pub_key_bytes(pub_key) for pub_key in co_signer_pub_keys)
        if not keys:
            raise InvalidSignerSet("no co-signers")
        if key_pair.pub_key_bytes in keys:
            raise InvalidSignerSet("own key listed as co-signer")
        # also reject duplicate co-signers
        sorted_pub_keys(keys)

        n = len(keys) + 1
        threshold = n if threshold is None else threshold
        check_threshold(threshold, n)

        object.__setattr__(self, "key_pair", key_pair)
        object.__setattr__(self, "co_signer_pub_keys", keys)
        object.__setattr__(self, "network", network_from_name(network))
        object.__setattr__(self, "threshold", threshold)

    @property
    def signer_pub_keys(self) -> Tuple[bytes, ...]:
        "Return the whole signer set, own key included."
        return (self.key_pair.pub_key_bytes,) + self.co_signer_pub_keys

    @cached_property
    def _multisig_address(self) -> str:
        return derive_address(
            self.signer_pub_keys,
            self.key_pair.pub_key_bytes,
            self.threshold,
            self.network,
        )

    def create_multisig_address(self) -> str:
        "Return the t-of-n multi-signature address (computed once)."
        return self._multisig_address

    def create_new_session(
        self, message: Octets, signers: Optional[Sequence[PubKey]] = None
    ) -> SignerSession:
        """Return a new SignerSession for the 32 bytes message.

        By default all the signers take part to the session;
        a subset including the own key and
        with at least threshold signers can be provided instead.
        """
        message = message_from_octets(message)
        if signers is None:
            session_keys: Sequence[PubKey] = self.signer_pub_keys
        else:
            session_keys = sorted_pub_keys(signers)
            unknown = set(session_keys) - set(self.signer_pub_keys)
            if unknown:
                err_msg = "not in signer set: "
                err_msg += ", ".join(short_hex(key) for key in sorted(unknown))
                raise InvalidSignerSet(err_msg)
            if self.key_pair.pub_key_bytes not in session_keys:
                raise InvalidSignerSet("own key not in session signers")
            if len(session_keys) < self.threshold:
                err_msg = f"not enough session signers: {len(session_keys)}"
                err_msg += f" instead of {self.threshold}"
                raise InvalidSignerSet(err_msg)

        _LOGGER.debug(
            "new session for %s on %s with %d signers",
            short_hex(message),
            self.network.name,
            len(session_keys),
        )
        return SignerSession(self.key_pair, session_keys, message)
