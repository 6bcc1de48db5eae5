# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_credentials -*-

"""
One-call creation of an authority and a server certificate signed by it.
"""

from ipaddress import IPv4Address, IPv6Address, ip_address

from eliot import ActionType, Field
from pyrsistent import PClass, field

from ._ca import ALGORITHM_FIELD, SERIAL_NUMBER_FIELD, SelfSignedAuthority
from ._certificate import Certificate, create_certificate
from ._errors import AddressError, EmptyAddressError
from ._keys import Algorithm, new_private_key
from ._template import (
    CertificateTemplate, DistinguishedName, ensure_client, ensure_server,
)


LOCALHOST_IP_ADDRESSES = (IPv4Address(u"127.0.0.1"), IPv6Address(u"::1"))
LOCALHOST_DNS_NAMES = (u"localhost",)

LOG_CREATE_CREDENTIALS = ActionType(
    u"localca:credentials:create",
    [ALGORITHM_FIELD,
     Field.for_types(u"canonical_name", [str],
                     u"The requested authority name, empty for the default."),
     Field(u"addresses", lambda addresses: [str(a) for a in addresses],
           u"The IP addresses and domain names of the certificate.")],
    [SERIAL_NUMBER_FIELD],
    u"An authority and a server certificate are being created.")


def _private_key_invariant(private_key):
    return (private_key is not None and private_key.original is not None,
            u"private key must be initialized")


class Credentials(PClass):
    """
    A server certificate, its private key, and the authority that signed it.

    Only ``certificate`` and ``private_key`` are needed to run a TLS server;
    ``ca_certificate`` is what clients install as a trust anchor.

    :ivar Certificate certificate: The leaf certificate.
    :ivar IPrivateKey private_key: The leaf private key.
    :ivar Certificate ca_certificate: The authority certificate.
    :ivar IPrivateKey ca_private_key: The authority private key.
    """
    certificate = field(type=Certificate, mandatory=True)
    private_key = field(mandatory=True, invariant=_private_key_invariant)
    ca_certificate = field(type=Certificate, mandatory=True)
    ca_private_key = field(mandatory=True, invariant=_private_key_invariant)

    def authority(self):
        """
        :return: The ``SelfSignedAuthority`` that issued ``certificate``.
        """
        return SelfSignedAuthority(
            certificate=self.ca_certificate, private_key=self.ca_private_key)


def addresses_template(ips_and_domains=()):
    """
    Create a template naming the given addresses.

    IP literals and ``ipaddress`` objects go to ``ip_addresses``, other
    strings to ``dns_names``, each in the order supplied.  With no entries
    the template names ``127.0.0.1``, ``::1`` and ``localhost``.

    :param ips_and_domains: Iterable of ``unicode`` or ``ipaddress``
        addresses.

    :raise EmptyAddressError: For an empty string, with the 1-based
        position of the entry.
    :raise AddressError: For an entry of any other type, or a domain
        name that is not ASCII; internationalized names must be given in
        their IDNA ``xn--`` form.

    :return: A ``CertificateTemplate``.
    """
    ip_addresses = []
    dns_names = []
    for index, entry in enumerate(ips_and_domains):
        if isinstance(entry, (IPv4Address, IPv6Address)):
            ip_addresses.append(entry)
        elif isinstance(entry, str):
            if not entry:
                raise EmptyAddressError(index + 1)
            try:
                ip_addresses.append(ip_address(entry))
                continue
            except ValueError:
                pass
            if not entry.isascii():
                raise AddressError(
                    u"address#{} is not an ASCII domain name: {!r}".format(
                        index + 1, entry))
            dns_names.append(entry)
        else:
            raise AddressError(
                u"address#{} is not a string or IP address: {!r}".format(
                    index + 1, entry))
    if not ip_addresses and not dns_names:
        ip_addresses.extend(LOCALHOST_IP_ADDRESSES)
        dns_names.extend(LOCALHOST_DNS_NAMES)
    return CertificateTemplate(ip_addresses=ip_addresses, dns_names=dns_names)


def create_credentials(algorithm, canonical_name=u"", ips_and_domains=(),
                       now=None, logger=None):
    """
    Create a new authority and a server certificate signed by it.

    Both keys use ``algorithm``.  The authority is created and validated
    before the leaf key is generated.

    :param algorithm: An ``Algorithm`` constant.
    :param unicode canonical_name: Common name of the authority, empty for
        ``default_authority_name()``.
    :param ips_and_domains: IP addresses and domain names the certificate is
        for; see ``addresses_template``.
    :param datetime now: Timezone aware current time, for tests.
    :param eliot.Logger logger: Where to log, ``None`` for the default.

    :return: ``Credentials``.
    """
    ips_and_domains = list(ips_and_domains)
    template = addresses_template(ips_and_domains)
    with LOG_CREATE_CREDENTIALS(
            logger, algorithm=algorithm, canonical_name=canonical_name,
            addresses=ips_and_domains) as action:
        authority = SelfSignedAuthority.initialize(
            canonical_name=canonical_name, algorithm=algorithm, now=now,
            logger=logger)
        authority.validate()
        private_key = new_private_key(algorithm)
        template = ensure_server(template, now=now)
        der = authority.sign(template, private_key.public_key())
        action.add_success_fields(serial_number=str(template.serial_number))
    return Credentials(
        certificate=Certificate(der_bytes=der),
        private_key=private_key,
        ca_certificate=authority.certificate,
        ca_private_key=authority.private_key,
    )


def create_rsa():
    """
    Create RSA credentials for ``localhost`` with a default authority name.
    Intended for tests.
    """
    return create_credentials(Algorithm.RSA)


def create_ed25519():
    """
    Create Ed25519 credentials for ``localhost`` with a default authority
    name.  Intended for tests.
    """
    return create_credentials(Algorithm.ED25519)


def issue_client_credentials(authority, common_name, algorithm=None,
                             now=None):
    """
    Issue a client authentication certificate from an existing authority.

    :param SelfSignedAuthority authority: The issuing authority.
    :param unicode common_name: Subject common name of the client.
    :param algorithm: ``Algorithm`` of the client key, by default the same
        as the authority's.
    :param datetime now: Timezone aware current time, for tests.

    :return: ``Credentials``.
    """
    if algorithm is None:
        algorithm = authority.algorithm()
    private_key = new_private_key(algorithm)
    template = ensure_client(
        CertificateTemplate(
            subject=DistinguishedName(common_name=common_name)),
        now=now)
    der = authority.sign(template, private_key.public_key())
    return Credentials(
        certificate=Certificate(der_bytes=der),
        private_key=private_key,
        ca_certificate=authority.certificate,
        ca_private_key=authority.private_key,
    )


def self_signed_localhost(algorithm=Algorithm.ED25519, now=None):
    """
    Create a server certificate for ``127.0.0.1``, ``::1`` and
    ``localhost`` signed by its own key, with no authority.

    :param algorithm: An ``Algorithm`` constant.
    :param datetime now: Timezone aware current time, for tests.

    :return: ``tuple`` of ``Certificate`` and ``IPrivateKey``.
    """
    private_key = new_private_key(algorithm)
    template = ensure_server(addresses_template(), now=now)
    der = create_certificate(
        template, template, private_key.public_key(), private_key)
    return Certificate(der_bytes=der), private_key
