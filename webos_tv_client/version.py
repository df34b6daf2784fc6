# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package webos_tv_client provides discovery, pairing and a request/response session
for LG webOS televisions.
"""

# The following line is automatically updated with "semantic-release version"
__version__ =  "0.3.0"


__all__ = [ __version__ ]
