# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_template -*-

"""
Certificate templates and the policies that fill them.

A ``CertificateTemplate`` describes a certificate before it is signed.  The
``ensure_*`` functions take a template and return a new one with every field
a modern client requires filled in.  Fields that are already set are left
alone, key usages are combined by union and extended key usages are only
appended when absent, so applying a policy twice gives the same template as
applying it once.
"""

import socket
from calendar import isleap
from datetime import datetime, timedelta
from ipaddress import IPv4Address, IPv6Address
from uuid import uuid4

from constantly import Values, ValueConstant
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from pyrsistent import PClass, field, pset_field, pvector_field
from pytz import UTC

from ._errors import HostnameError


DEFAULT_COUNTRY = u"US"
VALIDITY_YEARS = 10
# Subtracted from the end of the validity window.
VALIDITY_MARGIN = timedelta(minutes=1)
AUTHORITY_SUFFIX = u"ca"
AUTHORITY_DATE_FORMAT = u"%y%m%d"


class KeyUsage(Values):
    """
    Key usage bits, valued by the matching ``cryptography.x509.KeyUsage``
    argument name.
    """
    DIGITAL_SIGNATURE = ValueConstant(u"digital_signature")
    CONTENT_COMMITMENT = ValueConstant(u"content_commitment")
    KEY_ENCIPHERMENT = ValueConstant(u"key_encipherment")
    DATA_ENCIPHERMENT = ValueConstant(u"data_encipherment")
    KEY_AGREEMENT = ValueConstant(u"key_agreement")
    CERT_SIGN = ValueConstant(u"key_cert_sign")
    CRL_SIGN = ValueConstant(u"crl_sign")


class ExtendedKeyUsage(Values):
    """
    Extended key usages, valued by their object identifier.
    """
    SERVER_AUTH = ValueConstant(ExtendedKeyUsageOID.SERVER_AUTH)
    CLIENT_AUTH = ValueConstant(ExtendedKeyUsageOID.CLIENT_AUTH)


class DistinguishedName(PClass):
    """
    The parts of an X.509 name this package fills in.

    :ivar unicode common_name: The CN attribute, empty when unset.
    :ivar unicode country: The C attribute, empty when unset.
    """
    common_name = field(type=str, mandatory=True, initial=u"")
    country = field(type=str, mandatory=True, initial=u"")

    def to_name(self):
        """
        :return: A ``cryptography.x509.Name`` with the country first.
        """
        attributes = []
        if self.country:
            attributes.append(
                x509.NameAttribute(NameOID.COUNTRY_NAME, self.country))
        if self.common_name:
            attributes.append(
                x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attributes)

    @classmethod
    def from_name(cls, name):
        """
        Extract the common name and country of a ``cryptography.x509.Name``.
        """
        def first(oid):
            values = name.get_attributes_for_oid(oid)
            if values:
                return str(values[0].value)
            return u""
        return cls(common_name=first(NameOID.COMMON_NAME),
                   country=first(NameOID.COUNTRY_NAME))


def _all_ip_addresses(template):
    return (
        all(isinstance(address, (IPv4Address, IPv6Address))
            for address in template.ip_addresses),
        u"ip_addresses must hold ipaddress.IPv4Address or IPv6Address",
    )


class CertificateTemplate(PClass):
    """
    An unsigned description of a certificate.

    :ivar serial_number: ``int`` serial number, ``None`` when unset.
    :ivar DistinguishedName subject: The subject name.
    :ivar DistinguishedName issuer: The issuer name.  Only consulted by
        ``ensure_self_signed``; a signed certificate names the subject of
        its parent as issuer.
    :ivar not_before: ``datetime`` start of validity, ``None`` when unset.
    :ivar not_after: ``datetime`` end of validity, ``None`` when unset.
    :ivar bool basic_constraints_valid: Whether to emit basic constraints.
    :ivar bool is_ca: Whether the certificate is an authority.
    :ivar key_usage: ``PSet`` of ``KeyUsage`` constants.
    :ivar ext_key_usage: ``PVector`` of ``ExtendedKeyUsage`` constants.
    :ivar ip_addresses: ``PVector`` of ``ipaddress`` addresses.
    :ivar dns_names: ``PVector`` of ``unicode`` domain names.
    """
    __invariant__ = _all_ip_addresses

    serial_number = field(type=(int, type(None)), initial=None)
    subject = field(
        type=DistinguishedName, mandatory=True, initial=DistinguishedName())
    issuer = field(
        type=DistinguishedName, mandatory=True, initial=DistinguishedName())
    not_before = field(type=(datetime, type(None)), initial=None)
    not_after = field(type=(datetime, type(None)), initial=None)
    basic_constraints_valid = field(type=bool, mandatory=True, initial=False)
    is_ca = field(type=bool, mandatory=True, initial=False)
    key_usage = pset_field(ValueConstant)
    ext_key_usage = pvector_field(ValueConstant)
    ip_addresses = pvector_field(object)
    dns_names = pvector_field(str)


def random_serial_number():
    """
    :return: A fresh 128-bit ``int`` serial number, at most 39 decimal
        digits and never zero.
    """
    while True:
        serial = uuid4().int
        if serial:
            return serial


def short_hostname():
    """
    The host name up to the first dot, e.g. ``c66`` for ``c66.example.com``.

    :raise HostnameError: If the host name is empty.

    :return: ``unicode`` short host name.
    """
    hostname = socket.gethostname().split(u".", 1)[0]
    if not hostname:
        raise HostnameError(u"Host name is empty")
    return hostname


def default_authority_name(now=None):
    """
    The common name given to an authority when none is supplied:
    ``<short hostname>ca-<YYMMDD>``, e.g. ``c66ca-261017``.

    :param datetime now: Local time of creation, defaults to now.
    """
    if now is None:
        now = datetime.now()
    return u"{}{}-{}".format(
        short_hostname(), AUTHORITY_SUFFIX,
        now.strftime(AUTHORITY_DATE_FORMAT))


def start_of_day(now):
    """
    :param datetime now: Any timezone aware time.

    :return: ``datetime`` midnight UTC of the UTC date of ``now``.
    """
    now = now.astimezone(UTC)
    return UTC.localize(datetime(now.year, now.month, now.day))


def validity_end(not_before):
    """
    :param datetime not_before: The start of validity.

    :return: ``datetime`` ``VALIDITY_YEARS`` later, less ``VALIDITY_MARGIN``.
        February 29th of a year that is not a leap year becomes March 1st.
    """
    year = not_before.year + VALIDITY_YEARS
    if (not_before.month, not_before.day) == (2, 29) and not isleap(year):
        end = not_before.replace(year=year, month=3, day=1)
    else:
        end = not_before.replace(year=year)
    return end - VALIDITY_MARGIN


def ensure_template(template, now=None):
    """
    Fill the fields every signable certificate needs.

    * ``serial_number`` defaults to ``random_serial_number()``.
    * ``subject.country`` defaults to ``DEFAULT_COUNTRY``.
    * ``subject.common_name`` defaults to ``short_hostname()``.
    * ``not_before`` defaults to midnight UTC today.
    * ``not_after`` defaults to ``validity_end(not_before)``.
    * ``basic_constraints_valid`` becomes ``True``.

    :param CertificateTemplate template: The template to fill.
    :param datetime now: Timezone aware current time, for tests.

    :return: The filled ``CertificateTemplate``.
    """
    serial_number = template.serial_number
    if not serial_number:
        serial_number = random_serial_number()

    subject = template.subject
    if not subject.country:
        subject = subject.set(country=DEFAULT_COUNTRY)
    if not subject.common_name:
        subject = subject.set(common_name=short_hostname())

    not_before = template.not_before
    if not_before is None:
        if now is None:
            now = datetime.now(UTC)
        not_before = start_of_day(now)
    not_after = template.not_after
    if not_after is None:
        not_after = validity_end(not_before)

    return template.set(
        serial_number=serial_number,
        subject=subject,
        not_before=not_before,
        not_after=not_after,
        basic_constraints_valid=True,
    )


def ensure_self_signed(template, now=None):
    """
    Fill a template so it can be both template and parent of a self-signed
    authority certificate.

    * ``issuer.common_name`` defaults to ``default_authority_name()``.
    * ``issuer.country`` defaults to ``DEFAULT_COUNTRY``.
    * ``subject`` is copied from the issuer if it has no country.
    * ``is_ca`` becomes ``True`` and ``key_usage`` gains
      ``KeyUsage.CERT_SIGN`` and ``KeyUsage.CRL_SIGN``.
    * Everything ``ensure_template`` fills.

    :param CertificateTemplate template: The template to fill.
    :param datetime now: Timezone aware current time, for tests.

    :return: The filled ``CertificateTemplate``.
    """
    issuer = template.issuer
    if not issuer.common_name:
        local_now = None if now is None else now.astimezone()
        issuer = issuer.set(common_name=default_authority_name(local_now))
    if not issuer.country:
        issuer = issuer.set(country=DEFAULT_COUNTRY)

    subject = template.subject
    if not subject.country:
        subject = issuer

    template = template.set(
        issuer=issuer,
        subject=subject,
        is_ca=True,
        key_usage=template.key_usage.update(
            [KeyUsage.CERT_SIGN, KeyUsage.CRL_SIGN]),
    )
    return ensure_template(template, now=now)


def _ensure_leaf(template, ext_key_usage, now):
    template = ensure_template(template, now=now)
    usages = template.ext_key_usage
    if ext_key_usage not in usages:
        usages = usages.append(ext_key_usage)
    return template.set(
        key_usage=template.key_usage.add(KeyUsage.DIGITAL_SIGNATURE),
        ext_key_usage=usages,
    )


def ensure_server(template, now=None):
    """
    Fill a template for a server authentication certificate.

    :param CertificateTemplate template: The template to fill.
    :param datetime now: Timezone aware current time, for tests.

    :return: The filled ``CertificateTemplate``, whose key usage includes
        ``KeyUsage.DIGITAL_SIGNATURE`` and whose extended key usage includes
        ``ExtendedKeyUsage.SERVER_AUTH``.
    """
    return _ensure_leaf(template, ExtendedKeyUsage.SERVER_AUTH, now)


def ensure_client(template, now=None):
    """
    Fill a template for a client authentication certificate.

    :param CertificateTemplate template: The template to fill.
    :param datetime now: Timezone aware current time, for tests.

    :return: The filled ``CertificateTemplate``, whose key usage includes
        ``KeyUsage.DIGITAL_SIGNATURE`` and whose extended key usage includes
        ``ExtendedKeyUsage.CLIENT_AUTH``.
    """
    return _ensure_leaf(template, ExtendedKeyUsage.CLIENT_AUTH, now)
