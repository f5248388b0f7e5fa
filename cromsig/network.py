#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Network constants and associated functions.

Network constants are loaded at import time from the json files
in the _data directory.
"""

import json
from dataclasses import InitVar, dataclass
from os import path
from typing import Dict, Union

from dataclasses_json import DataClassJsonMixin

from cromsig.exceptions import UnknownNetwork


@dataclass(frozen=True)
class Network(DataClassJsonMixin):
    name: str
    # bech32 human readable part, e.g. multisig address starts with 'cro1'
    hrp: str
    # two hex digits, empty for the local development network
    chain_id: str
    check_validity: InitVar[bool] = True

    def __post_init__(self, check_validity: bool) -> None:
        if check_validity:
            self.assert_valid()

    def assert_valid(self) -> None:
        if not self.name or self.name != self.name.lower():
            raise UnknownNetwork(f"invalid network name: {self.name!r}")
        if not self.hrp or self.hrp != self.hrp.lower():
            raise UnknownNetwork(f"invalid hrp: {self.hrp!r}")
        if self.chain_id:
            try:
                int(self.chain_id, 16)
            except ValueError as e:
                raise UnknownNetwork(f"invalid chain id: {self.chain_id!r}") from e


NETWORKS: Dict[str, Network] = {}
datadir = path.join(path.dirname(__file__), "_data")
for net in ("mainnet", "testnet", "devnet"):
    filename = path.join(datadir, net + ".json")
    with open(filename, "r", encoding="ascii") as file_:
        NETWORKS[net] = Network.from_dict(json.load(file_))


def network_from_name(network: Union[str, Network] = "mainnet") -> Network:
    "Return the Network from its case-insensitive name (or the Network itself)."
    if isinstance(network, Network):
        return network
    key = str(network).strip().lower()
    try:
        return NETWORKS[key]
    except KeyError as e:
        raise UnknownNetwork(f"unknown network: {network!r}") from e


def chain_id_from_network(network: Union[str, Network]) -> str:
    "Return the chain id hex-string of the network ('' for devnet)."
    return network_from_name(network).chain_id


def network_from_chain_id(chain_id: str) -> Network:
    """Return the network of the chain id.

    Unknown chain ids are assumed to belong to a local development network.
    """
    chain_id = chain_id.strip().upper()
    for network in NETWORKS.values():
        if network.chain_id and network.chain_id == chain_id:
            return network
    return NETWORKS["devnet"]
