#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Multi-signature signing session.

Each co-signer runs its own SignerSession for a given 32 bytes message,
exchanging with the other co-signers (transport is a caller concern)
the outputs of four consecutive phases:

1. nonce commitment: C_i = TaggedHash('MultiSig/nonce commitment', R_i)
2. nonce: R_i = k_i*G, revealed only after all commitments are collected,
   so that no co-signer can choose its nonce as a function of the others'
3. partial signature: s_i = k_i + e*a_i*g*q_i
4. signature: (x(R), s_1 + ... + s_n), R = R_1 + ... + R_n

where a_i is the key aggregation coefficient, g is the factor
making the aggregated key y-coordinate even,
and e is the BIP340 challenge for R, the aggregated key, and the message.
If R has an odd y-coordinate, every co-signer uses n-k_i instead of k_i.

The resulting signature is a plain BIP340 signature
for the x-only aggregated key of the session signers.
"""

import logging
from enum import Enum
from hashlib import sha256
from typing import Dict, List, Optional, Sequence, Tuple, Union

from btclib.alias import Octets, Point
from btclib.ec import bytes_from_point, double_mult, mult, point_from_octets
from btclib.ec import secp256k1 as ec
from btclib.ecc.ssa import Sig, assert_as_valid_, challenge_, verify_
from btclib.hashes import tagged_hash
from btclib.to_pub_key import PubKey
from btclib.utils import bytes_from_octets

from cromsig.exceptions import (
    CommitmentMismatch,
    DuplicateContribution,
    InvalidContribution,
    InvalidMessage,
    InvalidPublicKey,
    InvalidSignerSet,
    MultiSigRuntimeError,
    NotReady,
    PrematureOperation,
    UnknownSigner,
    VerificationFailed,
)
from cromsig.key_agg import KeyAggContext, key_agg
from cromsig.key_pair import KeyPair, pub_key_bytes
from cromsig.nonce import multisig_nonce_
from cromsig.utils import short_hex

_LOGGER = logging.getLogger(__name__)

MESSAGE_SIZE = 32


def message_from_octets(message: Octets) -> bytes:
    "Return the 32 bytes message digest from bytes or hex-string."
    try:
        return bytes_from_octets(message, MESSAGE_SIZE)
    except (ValueError, TypeError) as e:
        raise InvalidMessage("input hash should be a hex string of 32 bytes") from e


def nonce_commitment(nonce: Octets) -> bytes:
    "Return the commitment to a 33 bytes compressed nonce point."
    nonce = bytes_from_octets(nonce, ec.p_size + 1)
    return tagged_hash(b"MultiSig/nonce commitment", nonce, sha256)


class SessionState(Enum):
    CREATED = "created"
    COMMIT_READY = "commit ready"
    COMMITS_COLLECTED = "commits collected"
    NONCE_READY = "nonce ready"
    NONCES_COLLECTED = "nonces collected"
    PARTIALLY_SIGNED = "partially signed"
    FULLY_COLLECTED = "fully collected"
    SIGNED = "signed"


class Contribution(Enum):
    NONCE_COMMITMENT = "nonce commitment"
    NONCE = "nonce"
    PARTIAL_SIGNATURE = "partial signature"


class SignerSession:
    """Signing session of the local co-signer for a single message.

    A session is not thread safe:
    concurrent add_* calls must be serialized by the caller.
    """

    def __init__(
        self,
        key_pair: KeyPair,
        signer_pub_keys: Sequence[PubKey],
        message: Octets,
    ) -> None:

        if not key_pair.has_prv_key:
            raise InvalidSignerSet("own key pair has no private key")
        self._key_pair = key_pair
        self._message = message_from_octets(message)

        self._key_agg_ctx = key_agg(signer_pub_keys)
        keys = self._key_agg_ctx.pub_keys
        if len(keys) < 2:
            raise InvalidSignerSet(f"not enough signers: {len(keys)}")
        self._self_key = key_pair.pub_key_bytes
        if self._self_key not in keys:
            err_msg = f"own key not in signer set: {short_hex(self._self_key)}"
            raise InvalidSignerSet(err_msg)
        self._peer_keys = tuple(key for key in keys if key != self._self_key)

        # secret nonce k and its point R
        self._secret_nonce: Optional[int] = None
        self._nonce_point: Optional[Point] = None
        self._nonce_commitment: Optional[bytes] = None
        self._nonce_revealed = False
        self._partial_signature: Optional[int] = None
        self._final_signature: Optional[Sig] = None

        self._peer_nonce_commitments: Dict[bytes, bytes] = {}
        self._peer_nonces: Dict[bytes, Point] = {}
        self._peer_partial_signatures: Dict[bytes, int] = {}

        _LOGGER.debug(
            "session created for %s: %d signers, message %s",
            short_hex(self._self_key),
            len(keys),
            short_hex(self._message),
        )

    # read-only accessors

    @property
    def message(self) -> bytes:
        return self._message

    @property
    def key_agg_ctx(self) -> KeyAggContext:
        return self._key_agg_ctx

    @property
    def aggregated_pub_key(self) -> bytes:
        "Return the 32 bytes x-only aggregated key the signature verifies against."
        return self._key_agg_ctx.bip340_pub_key

    @property
    def signer_pub_keys(self) -> Tuple[bytes, ...]:
        return self._key_agg_ctx.pub_keys

    @property
    def peer_pub_keys(self) -> Tuple[bytes, ...]:
        return self._peer_keys

    @property
    def own_nonce_commitment(self) -> Optional[bytes]:
        return self._nonce_commitment

    @property
    def own_nonce(self) -> Optional[bytes]:
        if not self._nonce_revealed or self._nonce_point is None:
            return None
        return bytes_from_point(self._nonce_point)

    @property
    def own_partial_signature(self) -> Optional[bytes]:
        if self._partial_signature is None:
            return None
        return self._partial_signature.to_bytes(ec.n_size, "big", signed=False)

    @property
    def final_signature(self) -> Optional[bytes]:
        if self._final_signature is None:
            return None
        return self._final_signature.serialize()

    @property
    def state(self) -> SessionState:
        if self._final_signature is not None:
            return SessionState.SIGNED
        if self._partial_signature is not None:
            if self.has_all_partial_signatures():
                return SessionState.FULLY_COLLECTED
            return SessionState.PARTIALLY_SIGNED
        if self._nonce_revealed:
            if self.has_all_nonces():
                return SessionState.NONCES_COLLECTED
            return SessionState.NONCE_READY
        if self._nonce_commitment is not None:
            if self.has_all_nonce_commitments():
                return SessionState.COMMITS_COLLECTED
            return SessionState.COMMIT_READY
        return SessionState.CREATED

    # collection queries

    def _collection(self, contribution: Contribution) -> Dict:
        if contribution is Contribution.NONCE_COMMITMENT:
            return self._peer_nonce_commitments
        if contribution is Contribution.NONCE:
            return self._peer_nonces
        return self._peer_partial_signatures

    def missing_signers(self, contribution: Contribution) -> List[bytes]:
        "Return the co-signers whose contribution has not been added yet."
        collection = self._collection(contribution)
        return [key for key in self._peer_keys if key not in collection]

    def has_all_nonce_commitments(self) -> bool:
        return len(self._peer_nonce_commitments) == len(self._peer_keys)

    def has_all_nonces(self) -> bool:
        return len(self._peer_nonces) == len(self._peer_keys)

    def has_all_partial_signatures(self) -> bool:
        return len(self._peer_partial_signatures) == len(self._peer_keys)

    def _peer_key(self, pub_key: PubKey, contribution: Contribution) -> bytes:
        "Return the co-signer key, checking its contribution is a new one."
        try:
            key = pub_key_bytes(pub_key)
        except InvalidPublicKey as e:
            _LOGGER.warning("%s from invalid public key rejected", contribution.value)
            raise UnknownSigner(f"invalid co-signer public key: {pub_key!r}") from e
        if key not in self._peer_keys:
            _LOGGER.warning("%s from %s rejected", contribution.value, short_hex(key))
            raise UnknownSigner(f"not a co-signer: {key.hex()}")
        if key in self._collection(contribution):
            _LOGGER.warning(
                "duplicate %s from %s rejected", contribution.value, short_hex(key)
            )
            err_msg = f"{contribution.value} already added for co-signer: {key.hex()}"
            raise DuplicateContribution(err_msg)
        return key

    # phase 1: nonce commitment

    def generate_nonce_commitment(self) -> bytes:
        """Return the commitment to the own nonce.

        The secret nonce is generated at the first call,
        later calls return the very same commitment.
        """
        if self._nonce_commitment is not None:
            return self._nonce_commitment

        assert self._key_pair.prv_key is not None
        k = multisig_nonce_(
            self._message, self._key_pair.prv_key, self._key_agg_ctx.x_Q
        )
        R = mult(k)
        commitment = nonce_commitment(bytes_from_point(R))
        self._secret_nonce = k
        self._nonce_point = R
        self._nonce_commitment = commitment
        _LOGGER.debug("nonce commitment generated: %s", short_hex(commitment))
        return commitment

    def add_nonce_commitment(self, pub_key: PubKey, commitment: Octets) -> None:
        key = self._peer_key(pub_key, Contribution.NONCE_COMMITMENT)
        try:
            commitment = bytes_from_octets(commitment, 32)
        except ValueError as e:
            _LOGGER.warning("malformed nonce commitment from %s", short_hex(key))
            raise InvalidContribution(f"invalid nonce commitment: {e}") from e
        self._peer_nonce_commitments[key] = commitment
        _LOGGER.debug(
            "nonce commitment added from %s (%d/%d)",
            short_hex(key),
            len(self._peer_nonce_commitments),
            len(self._peer_keys),
        )

    # phase 2: nonce

    def generate_nonce(self) -> bytes:
        "Return the own nonce point, revealed after all commitments are collected."
        if self._nonce_commitment is None or not self.has_all_nonce_commitments():
            err_msg = "nonce can be generated only after "
            err_msg += "all co-signers' commitments are added"
            raise PrematureOperation(err_msg)

        assert self._nonce_point is not None
        if not self._nonce_revealed:
            self._nonce_revealed = True
            _LOGGER.debug("nonce revealed")
        return bytes_from_point(self._nonce_point)

    def add_nonce(self, pub_key: PubKey, nonce: Octets) -> None:
        if not self._nonce_revealed:
            err_msg = "co-signers' nonces can be added only after "
            err_msg += "the own nonce is generated"
            raise PrematureOperation(err_msg)
        key = self._peer_key(pub_key, Contribution.NONCE)
        try:
            nonce = bytes_from_octets(nonce, ec.p_size + 1)
            R = point_from_octets(nonce)
        except ValueError as e:
            _LOGGER.warning("malformed nonce from %s", short_hex(key))
            raise InvalidContribution(f"invalid nonce: {e}") from e
        if nonce_commitment(nonce) != self._peer_nonce_commitments[key]:
            _LOGGER.warning("nonce from %s does not match commitment", short_hex(key))
            raise CommitmentMismatch(f"nonce does not match commitment: {key.hex()}")
        self._peer_nonces[key] = R
        _LOGGER.debug(
            "nonce added from %s (%d/%d)",
            short_hex(key),
            len(self._peer_nonces),
            len(self._peer_keys),
        )

    def _aggregated_nonce(self) -> Point:
        assert self._nonce_point is not None
        R = self._nonce_point
        for R_i in self._peer_nonces.values():
            R = ec.add(R, R_i)
        if R[1] == 0:
            raise MultiSigRuntimeError("aggregated nonce is the infinity point")
        return R

    def _challenge(self, R: Point) -> int:
        return challenge_(self._message, self._key_agg_ctx.x_Q, R[0], ec, sha256)

    # phase 3: partial signature

    def partial_sign(self) -> bytes:
        "Return the own 32 bytes partial signature."
        if self._partial_signature is not None:
            return self._partial_signature.to_bytes(ec.n_size, "big", signed=False)
        if not self._nonce_revealed or not self.has_all_nonces():
            err_msg = "session can be partially signed only after "
            err_msg += "all co-signers' nonces are added"
            raise PrematureOperation(err_msg)

        R = self._aggregated_nonce()
        e = self._challenge(R)
        ctx = self._key_agg_ctx
        a = ctx.coefficient(self._self_key)
        assert self._secret_nonce is not None and self._key_pair.prv_key is not None
        k = self._secret_nonce if R[1] % 2 == 0 else ec.n - self._secret_nonce
        s = (k + e * a * ctx.g * self._key_pair.prv_key) % ec.n
        self._partial_signature = s
        _LOGGER.debug("partial signature generated")
        return s.to_bytes(ec.n_size, "big", signed=False)

    def add_partial_signature(self, pub_key: PubKey, partial_signature: Octets) -> None:
        key = self._peer_key(pub_key, Contribution.PARTIAL_SIGNATURE)
        try:
            partial_signature = bytes_from_octets(partial_signature, ec.n_size)
        except ValueError as e:
            _LOGGER.warning("malformed partial signature from %s", short_hex(key))
            raise InvalidContribution(f"invalid partial signature: {e}") from e
        s = int.from_bytes(partial_signature, "big", signed=False)
        if s >= ec.n:
            _LOGGER.warning("malformed partial signature from %s", short_hex(key))
            raise InvalidContribution("partial signature not in 0..n-1")
        self._peer_partial_signatures[key] = s
        _LOGGER.debug(
            "partial signature added from %s (%d/%d)",
            short_hex(key),
            len(self._peer_partial_signatures),
            len(self._peer_keys),
        )

    def verify_partial_signature(self, pub_key: PubKey) -> bool:
        """Return True if the co-signer partial signature is consistent.

        s_i*G must be equal to R_i + e*a_i*g*P_i,
        with R_i negated if the aggregated nonce has an odd y-coordinate.
        This allows to identify a misbehaving co-signer.
        """
        key = pub_key_bytes(pub_key)
        if key not in self._peer_partial_signatures or key not in self._peer_nonces:
            return False
        if not self.has_all_nonces():
            return False

        R = self._aggregated_nonce()
        e = self._challenge(R)
        ctx = self._key_agg_ctx
        R_i = self._peer_nonces[key]
        if R[1] % 2:
            R_i = ec.negate(R_i)
        P_i = point_from_octets(key)
        s_i = self._peer_partial_signatures[key]
        # s_i*G - e*a_i*g*P_i
        e_i = ec.n - e * ctx.coefficient(key) * ctx.g % ec.n
        return double_mult(s_i, ec.G, e_i, P_i) == R_i

    # phase 4: signature

    def sign(self) -> bytes:
        "Return the 64 bytes BIP340 signature aggregating all partial signatures."
        if self._final_signature is not None:
            return self._final_signature.serialize()
        if self._partial_signature is None or not self.has_all_partial_signatures():
            err_msg = "session can be finally signed only after "
            err_msg += "all co-signers' partial signatures are added"
            raise PrematureOperation(err_msg)

        R = self._aggregated_nonce()
        s = self._partial_signature + sum(self._peer_partial_signatures.values())
        s %= ec.n
        self._final_signature = Sig(R[0], s)
        _LOGGER.debug(
            "session signed: aggregated key %s", short_hex(self.aggregated_pub_key)
        )
        return self._final_signature.serialize()

    def _signature_to_check(
        self, sig: Optional[Union[Sig, Octets]]
    ) -> Union[Sig, Octets]:
        if sig is not None:
            return sig
        if self._final_signature is None:
            raise NotReady("Own signature is not ready for verification")
        return self._final_signature

    def assert_as_valid(self, sig: Optional[Union[Sig, Octets]] = None) -> None:
        """Raise VerificationFailed if the signature is not valid.

        If no signature is provided, the own final signature is checked.
        """
        sig = self._signature_to_check(sig)
        try:
            assert_as_valid_(self._message, self.aggregated_pub_key, sig)
        except (ValueError, TypeError, RuntimeError) as e:
            raise VerificationFailed(f"signature verification failed: {e}") from e

    def verify(self, sig: Optional[Union[Sig, Octets]] = None) -> bool:
        """Verify the signature for the session message and signers.

        If no signature is provided, the own final signature is verified.
        Malformed signatures are not valid: only a missing signature raises.
        """
        sig = self._signature_to_check(sig)
        return verify_(self._message, self.aggregated_pub_key, sig)
