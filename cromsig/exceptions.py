#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Exception classes.

The three root classes are only meant to discriminate between Exceptions
being raised by cromsig from those raised by other codebase;
users are usually better off just dealing with the regular
ValueError, TypeError, and RuntimeError
from which the cromsig versions are derived.

The multi-signature protocol errors are further specialized,
so that a transport layer can tell a misbehaving co-signer
(e.g. DuplicateContribution, CommitmentMismatch)
from a local misuse of the session (e.g. PrematureOperation).
"""


class MultiSigValueError(ValueError):
    pass


class MultiSigTypeError(TypeError):
    pass


class MultiSigRuntimeError(RuntimeError):
    pass


# invalid inputs, detected before any state mutation


class InvalidPublicKey(MultiSigValueError):
    "Off-curve, INF, or otherwise malformed public key."


class InvalidSignerSet(MultiSigValueError):
    "Signer set too small, with duplicate keys, or missing the local key."


class InvalidThreshold(MultiSigValueError):
    "Threshold outside [1, n]."


class InvalidMessage(MultiSigValueError):
    "Message is not a well-formed 32 bytes digest."


class UnknownNetwork(MultiSigValueError):
    pass


class UnknownSigner(MultiSigValueError):
    "Contribution attributed to a public key that is not a co-signer."


class DuplicateContribution(MultiSigValueError):
    "Co-signer contribution submitted more than once."


class InvalidContribution(MultiSigValueError):
    "Malformed commitment, nonce, or partial signature."


class CommitmentMismatch(MultiSigValueError):
    "Revealed nonce does not match the previously accepted commitment."


# protocol phase errors


class PrematureOperation(MultiSigRuntimeError):
    "Generation step invoked before its collection prerequisite."


class NotReady(MultiSigRuntimeError):
    "No signature available for verification."


class VerificationFailed(MultiSigRuntimeError):
    "Signature does not satisfy the verification equation."
