# Copyright ClusterHQ Inc.  See LICENSE file for details.

import string

from hypothesis.strategies import (
    builds, ip_addresses, lists, one_of, sampled_from, text,
)

from .._keys import Algorithm


_label_characters = string.ascii_lowercase + string.digits


labels = builds(
    lambda first, rest: first + rest,
    sampled_from(string.ascii_lowercase),
    text(alphabet=_label_characters, max_size=12))
"""
DNS labels that start with a letter.

e.g. ``svc``, ``a0``.
"""


domain_names = lists(labels, min_size=1, max_size=4).map(u'.'.join)
"""
Domain names that are never IP literals.

e.g. ``svc.example``, ``localhost``.
"""


ip_literals = ip_addresses().map(str)
"""
IPv4 and IPv6 literals.

e.g. ``10.0.0.1``, ``::1``.
"""


address_entries = one_of(ip_addresses(), ip_literals, domain_names)
"""
Entries accepted in the address list of a certificate: ``ipaddress``
objects, IP literals and domain names.
"""


address_lists = lists(address_entries, min_size=1, max_size=6)
"""
Non-empty address lists.
"""


algorithms = sampled_from(list(Algorithm.iterconstants()))
"""
The supported key algorithms.
"""
