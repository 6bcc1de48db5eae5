# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
The version of ``localca``.
"""

__version__ = "1.0.0"
