#!/usr/bin/env python3

# Copyright (C) 2020-2022 The cromsig developers
#
# This file is part of cromsig. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of cromsig including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"__init__ module for the cromsig package."

import logging

name = "cromsig"
__version__ = "2022.6.1"
__author__ = "The cromsig developers"
__author_email__ = "devs@cromsig.org"
__copyright__ = "Copyright (C) 2020-2022 The cromsig developers"
__license__ = "MIT License"

# the library is silent unless the application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
