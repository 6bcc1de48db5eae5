# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Shared command line components.
"""
