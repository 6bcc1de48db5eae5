# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Tests for ``localca._credentials``.
"""

import socket
from datetime import datetime
from ipaddress import IPv4Address, IPv6Address, ip_address

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from eliot import MemoryLogger
from eliot.testing import LoggedAction, assertHasAction, validate_logging

from hypothesis import given, settings

from pyrsistent import InvariantException
from pytz import UTC

from .. import (
    Algorithm, Credentials, DistinguishedName, Ed25519PrivateKey,
    create_credentials, create_ed25519, create_rsa, issue_client_credentials,
    self_signed_localhost, AddressError, EmptyAddressError,
    UnsupportedAlgorithmError,
)
from .._ca import LOG_CREATE_AUTHORITY
from .._credentials import LOG_CREATE_CREDENTIALS, addresses_template
from ..testtools import TestCase, get_extension
from ..testtools.strategies import address_lists


NOW = UTC.localize(datetime(2026, 10, 17, 15, 30, 12))


def alternative_names(certificate):
    """
    :return: ``tuple`` of the DNS names and IP addresses a certificate is
        for, each a ``list`` in certificate order.
    """
    names = get_extension(certificate, x509.SubjectAlternativeName)
    return (names.get_values_for_type(x509.DNSName),
            names.get_values_for_type(x509.IPAddress))


def common_name(name):
    return DistinguishedName.from_name(name).common_name


class AddressesTemplateTests(TestCase):
    """
    Tests for ``addresses_template``.
    """
    def test_localhost(self):
        """
        With no entries the template is for the local host.
        """
        template = addresses_template([])
        self.assertEqual(
            ([IPv4Address(u"127.0.0.1"), IPv6Address(u"::1")],
             [u"localhost"]),
            (list(template.ip_addresses), list(template.dns_names)))

    def test_split(self):
        """
        IP literals and ``ipaddress`` objects become IP addresses and other
        strings domain names, in order.
        """
        template = addresses_template(
            [u"svc.example", u"::1", IPv4Address(u"10.0.0.1"), u"a",
             u"192.168.0.1"])
        self.assertEqual(
            ([IPv6Address(u"::1"), IPv4Address(u"10.0.0.1"),
              IPv4Address(u"192.168.0.1")],
             [u"svc.example", u"a"]),
            (list(template.ip_addresses), list(template.dns_names)))

    def test_empty_entry(self):
        """
        An empty entry raises ``EmptyAddressError`` with its 1-based
        position.
        """
        error = self.assertRaises(
            EmptyAddressError, addresses_template,
            [u"svc.example", u"10.0.0.1", u""])
        self.assertEqual((3, u"address#3 empty"), (error.position, str(error)))

    def test_wrong_type(self):
        """
        Entries that are neither strings nor IP addresses raise
        ``AddressError``.
        """
        self.assertRaises(AddressError, addresses_template, [u"a", 42])

    def test_non_ascii_domain(self):
        """
        A domain name that is not ASCII raises ``AddressError`` naming its
        1-based position.
        """
        error = self.assertRaises(
            AddressError, addresses_template,
            [u"svc.example", u"bücher.example"])
        self.assertTrue(
            str(error).startswith(u"address#2 is not an ASCII domain name"))

    def test_idna_domain(self):
        """
        An internationalized domain name in its ``xn--`` form is accepted.
        """
        template = addresses_template([u"xn--bcher-kva.example"])
        self.assertEqual(
            [u"xn--bcher-kva.example"], list(template.dns_names))


class CreateCredentialsTests(TestCase):
    """
    Tests for ``create_credentials``.
    """
    def setUp(self):
        super(CreateCredentialsTests, self).setUp()
        self.patch(socket, "gethostname", lambda: u"c66.example.com")

    def test_default_ed25519(self):
        """
        Default Ed25519 credentials are for the local host and signed by an
        authority named after the host and the date.
        """
        credentials = create_credentials(Algorithm.ED25519, now=NOW)
        ca = credentials.ca_certificate.parse()
        leaf = credentials.certificate.parse()
        self.assertEqual(
            (u"c66ca-" + NOW.astimezone().strftime(u"%y%m%d"),
             common_name(ca.subject), u"c66",
             ([u"localhost"],
              [IPv4Address(u"127.0.0.1"), IPv6Address(u"::1")]),
             Algorithm.ED25519, Algorithm.ED25519, None),
            (common_name(ca.subject), common_name(leaf.issuer),
             common_name(leaf.subject),
             alternative_names(credentials.certificate),
             credentials.private_key.algorithm(),
             credentials.ca_private_key.algorithm(),
             leaf.verify_directly_issued_by(ca)))

    def test_rsa_named(self):
        """
        RSA credentials use 2048 bit keys, the given authority name and the
        given addresses.
        """
        credentials = create_credentials(
            Algorithm.RSA, canonical_name=u"myca",
            ips_and_domains=[IPv4Address(u"10.0.0.1"), u"svc.example"],
            now=NOW)
        leaf = credentials.certificate.parse()
        self.assertEqual(
            (u"myca", ([u"svc.example"], [IPv4Address(u"10.0.0.1")]),
             2048, 2048, None),
            (common_name(leaf.issuer),
             alternative_names(credentials.certificate),
             credentials.private_key.original.key_size,
             credentials.ca_private_key.original.key_size,
             leaf.verify_directly_issued_by(
                 credentials.ca_certificate.parse())))

    def test_ecdsa_empty_address(self):
        """
        An empty address raises ``EmptyAddressError`` before any key is
        generated.
        """
        error = self.assertRaises(
            EmptyAddressError, create_credentials, Algorithm.ECDSA,
            ips_and_domains=[u"svc.example", u"10.0.0.1", u""])
        self.assertEqual(3, error.position)

    def test_unsupported_algorithm(self):
        """
        An unknown algorithm raises ``UnsupportedAlgorithmError``.
        """
        self.assertRaises(
            UnsupportedAlgorithmError, create_credentials, u"dsa")

    def test_non_ascii_domain(self):
        """
        A domain name that is not ASCII raises ``AddressError`` before an
        authority is created.
        """
        logger = MemoryLogger()
        self.assertRaises(
            AddressError, create_credentials, Algorithm.ED25519,
            ips_and_domains=[u"b\u00fccher.example"], logger=logger)
        self.assertEqual([], logger.messages)

    def test_server_certificate(self):
        """
        The leaf is a server authentication certificate and the authority
        is an authority.
        """
        credentials = create_credentials(Algorithm.ECDSA, now=NOW)
        self.assertEqual(
            ([ExtendedKeyUsageOID.SERVER_AUTH], False, True),
            (list(get_extension(credentials.certificate,
                                x509.ExtendedKeyUsage)),
             get_extension(credentials.certificate,
                           x509.BasicConstraints).ca,
             get_extension(credentials.ca_certificate,
                           x509.BasicConstraints).ca))

    def test_keys_match(self):
        """
        Each certificate carries the public half of its private key.
        """
        credentials = create_credentials(Algorithm.ECDSA, now=NOW)
        self.assertEqual(
            (True, True),
            (credentials.certificate.public_key().equal(
                credentials.private_key.public_key()),
             credentials.ca_certificate.public_key().equal(
                 credentials.ca_private_key.public_key())))

    def test_authority(self):
        """
        ``Credentials.authority`` is the authority that signed the leaf.
        """
        credentials = create_credentials(Algorithm.ED25519, now=NOW)
        authority = credentials.authority()
        self.assertEqual(
            (credentials.ca_certificate, credentials.ca_private_key,
             credentials.ca_certificate.parse()),
            (authority.certificate, authority.private_key,
             authority.validate()))

    def test_distinct_serial_numbers(self):
        """
        A thousand credentials have distinct serial numbers.
        """
        serials = set()
        for i in range(1000):
            credentials = create_credentials(Algorithm.ED25519, now=NOW)
            serials.add(credentials.certificate.parse().serial_number)
            serials.add(credentials.ca_certificate.parse().serial_number)
        self.assertEqual(2000, len(serials))

    @settings(max_examples=20, deadline=None)
    @given(entries=address_lists)
    def test_addresses(self, entries):
        """
        The certificate names exactly the requested addresses.
        """
        ips = []
        names = []
        for entry in entries:
            if isinstance(entry, str):
                try:
                    ips.append(ip_address(entry))
                except ValueError:
                    names.append(entry)
            else:
                ips.append(entry)
        credentials = create_credentials(
            Algorithm.ED25519, ips_and_domains=entries, now=NOW)
        self.assertEqual(
            (names, ips), alternative_names(credentials.certificate))

    @validate_logging(
        assertHasAction, LOG_CREATE_CREDENTIALS, succeeded=True)
    def test_logging(self, logger):
        """
        Creating credentials is logged, with the creation of the authority
        inside.
        """
        credentials = create_credentials(
            Algorithm.ED25519, canonical_name=u"myca", now=NOW,
            logger=logger)
        [logged] = LoggedAction.of_type(
            logger.messages, LOG_CREATE_CREDENTIALS)
        self.assertEqual(
            (u"myca", str(credentials.certificate.parse().serial_number),
             [LOG_CREATE_AUTHORITY.action_type]),
            (logged.start_message[u"canonical_name"],
             logged.end_message[u"serial_number"],
             [child.start_message[u"action_type"]
              for child in logged.children]))


class ConvenienceTests(TestCase):
    """
    Tests for ``create_rsa``, ``create_ed25519`` and
    ``self_signed_localhost``.
    """
    def test_create_rsa(self):
        """
        ``create_rsa`` creates RSA credentials for the local host.
        """
        credentials = create_rsa()
        self.assertEqual(
            (Algorithm.RSA, [u"localhost"]),
            (credentials.private_key.algorithm(),
             alternative_names(credentials.certificate)[0]))

    def test_create_ed25519(self):
        """
        ``create_ed25519`` creates Ed25519 credentials for the local host.
        """
        credentials = create_ed25519()
        self.assertEqual(
            (Algorithm.ED25519, [u"localhost"]),
            (credentials.private_key.algorithm(),
             alternative_names(credentials.certificate)[0]))

    def test_self_signed_localhost(self):
        """
        ``self_signed_localhost`` creates a server certificate for the local
        host that is signed by its own key and is not an authority.
        """
        certificate, private_key = self_signed_localhost(now=NOW)
        parsed = certificate.parse()
        self.assertEqual(
            (None, parsed.subject, False, True,
             ([u"localhost"],
              [IPv4Address(u"127.0.0.1"), IPv6Address(u"::1")])),
            (parsed.verify_directly_issued_by(parsed), parsed.issuer,
             get_extension(certificate, x509.BasicConstraints).ca,
             certificate.public_key().equal(private_key.public_key()),
             alternative_names(certificate)))

    def test_self_signed_localhost_rsa(self):
        """
        ``self_signed_localhost`` accepts an algorithm.
        """
        certificate, private_key = self_signed_localhost(Algorithm.RSA)
        self.assertEqual(Algorithm.RSA, certificate.public_key().algorithm())


class IssueClientCredentialsTests(TestCase):
    """
    Tests for ``issue_client_credentials``.
    """
    def setUp(self):
        super(IssueClientCredentialsTests, self).setUp()
        self.authority = create_credentials(
            Algorithm.ECDSA, canonical_name=u"myca", now=NOW).authority()

    def test_client_certificate(self):
        """
        The certificate authenticates a client with the given name and is
        issued by the authority.
        """
        credentials = issue_client_credentials(
            self.authority, u"alice", now=NOW)
        parsed = credentials.certificate.parse()
        self.assertEqual(
            (u"alice", [ExtendedKeyUsageOID.CLIENT_AUTH], None,
             self.authority.certificate),
            (common_name(parsed.subject),
             list(get_extension(credentials.certificate,
                                x509.ExtendedKeyUsage)),
             parsed.verify_directly_issued_by(
                 self.authority.certificate.parse()),
             credentials.ca_certificate))

    def test_authority_algorithm(self):
        """
        The client key has the authority's algorithm by default.
        """
        credentials = issue_client_credentials(self.authority, u"alice")
        self.assertEqual(
            Algorithm.ECDSA, credentials.private_key.algorithm())

    def test_other_algorithm(self):
        """
        The client key can use another algorithm.
        """
        credentials = issue_client_credentials(
            self.authority, u"alice", algorithm=Algorithm.ED25519)
        self.assertEqual(
            Algorithm.ED25519, credentials.private_key.algorithm())


class CredentialsTests(TestCase):
    """
    Tests for ``Credentials``.
    """
    def test_uninitialized_key(self):
        """
        Credentials cannot hold uninitialized private keys.
        """
        credentials = create_ed25519()
        self.assertRaises(
            InvariantException, credentials.set,
            private_key=Ed25519PrivateKey())

    def test_rebuild(self):
        """
        Credentials rebuilt from their parts are equal.
        """
        credentials = create_ed25519()
        self.assertEqual(
            credentials,
            Credentials(
                certificate=credentials.certificate,
                private_key=credentials.private_key,
                ca_certificate=credentials.ca_certificate,
                ca_private_key=credentials.ca_private_key))
