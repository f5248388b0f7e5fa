#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"Assorted utilities."


def short_hex(octets: bytes, size: int = 4) -> str:
    "Return the first bytes of octets as hex-string, for log messages."
    return octets[:size].hex() + ("..." if len(octets) > size else "")
