# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Tests for ``localca._template``.
"""

import socket
from datetime import datetime, timedelta, timezone
from ipaddress import IPv4Address

from cryptography import x509
from cryptography.x509.oid import NameOID

from hypothesis import given, settings
from hypothesis.strategies import lists, sampled_from

from pyrsistent import InvariantException
from pytz import UTC

from .. import (
    CertificateTemplate, DistinguishedName, ExtendedKeyUsage, KeyUsage,
    default_authority_name, ensure_client, ensure_self_signed, ensure_server,
    ensure_template, short_hostname, HostnameError,
)
from .._template import random_serial_number, start_of_day, validity_end
from ..testtools import TestCase
from ..testtools.strategies import domain_names


NOW = UTC.localize(datetime(2026, 10, 17, 15, 30, 12))
MIDNIGHT = UTC.localize(datetime(2026, 10, 17))


class HostnameTestCase(TestCase):
    """
    A ``TestCase`` running on a host called ``c66.example.com``.
    """
    hostname = u"c66.example.com"

    def setUp(self):
        super(HostnameTestCase, self).setUp()
        self.patch(socket, "gethostname", lambda: self.hostname)


class ShortHostnameTests(HostnameTestCase):
    """
    Tests for ``short_hostname`` and ``default_authority_name``.
    """
    def test_first_label(self):
        """
        ``short_hostname`` is the host name up to the first dot.
        """
        self.assertEqual(u"c66", short_hostname())

    def test_unqualified(self):
        """
        A host name without dots is used as is.
        """
        self.hostname = u"c66"
        self.assertEqual(u"c66", short_hostname())

    def test_empty(self):
        """
        ``HostnameError`` is raised for an empty host name.
        """
        for hostname in [u"", u".example.com"]:
            self.hostname = hostname
            self.assertRaises(HostnameError, short_hostname)

    def test_authority_name(self):
        """
        ``default_authority_name`` is the short host name, ``ca`` and the
        date.
        """
        self.assertEqual(
            u"c66ca-261017", default_authority_name(datetime(2026, 10, 17)))


class SerialNumberTests(TestCase):
    """
    Tests for ``random_serial_number``.
    """
    def test_range(self):
        """
        Serial numbers are positive with at most 39 decimal digits.
        """
        serials = [random_serial_number() for i in range(100)]
        self.assertEqual(
            (True, 100),
            (all(0 < serial < 10 ** 39 for serial in serials),
             len(set(serials))))


class ValidityTests(TestCase):
    """
    Tests for ``start_of_day`` and ``validity_end``.
    """
    def test_start_of_day(self):
        """
        ``start_of_day`` is midnight UTC of the UTC date.
        """
        self.assertEqual(MIDNIGHT, start_of_day(NOW))

    def test_start_of_day_other_zone(self):
        """
        The UTC date is used for times in other timezones.
        """
        late = UTC.localize(datetime(2026, 10, 18, 2, 0)).astimezone(
            timezone(timedelta(hours=-7)))
        self.assertEqual(
            UTC.localize(datetime(2026, 10, 18)), start_of_day(late))

    def test_ten_years(self):
        """
        Validity ends ten years later, less one minute.
        """
        self.assertEqual(
            UTC.localize(datetime(2036, 10, 16, 23, 59)),
            validity_end(MIDNIGHT))

    def test_leap_day(self):
        """
        February 29th becomes March 1st in a year that is not a leap year.
        """
        self.assertEqual(
            UTC.localize(datetime(2034, 2, 28, 23, 59)),
            validity_end(UTC.localize(datetime(2024, 2, 29))))

    def test_time_of_day_kept(self):
        """
        The time of day of the start is kept.
        """
        self.assertEqual(
            UTC.localize(datetime(2036, 10, 17, 15, 29, 12)),
            validity_end(NOW))


class DistinguishedNameTests(TestCase):
    """
    Tests for ``DistinguishedName``.
    """
    def test_to_name(self):
        """
        The country comes before the common name.
        """
        self.assertEqual(
            x509.Name([
                x509.NameAttribute(NameOID.COUNTRY_NAME, u"US"),
                x509.NameAttribute(NameOID.COMMON_NAME, u"myca"),
            ]),
            DistinguishedName(common_name=u"myca", country=u"US").to_name())

    def test_empty_attributes_omitted(self):
        """
        Empty attributes are left out of the name.
        """
        self.assertEqual(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, u"myca")]),
            DistinguishedName(common_name=u"myca").to_name())

    def test_from_name(self):
        """
        ``from_name`` extracts the attributes ``to_name`` writes.
        """
        name = DistinguishedName(common_name=u"myca", country=u"DE")
        self.assertEqual(name, DistinguishedName.from_name(name.to_name()))


class CertificateTemplateTests(TestCase):
    """
    Tests for ``CertificateTemplate``.
    """
    def test_defaults(self):
        """
        A new template has nothing set.
        """
        template = CertificateTemplate()
        self.assertEqual(
            (None, DistinguishedName(), None, False, False, set(), []),
            (template.serial_number, template.subject, template.not_before,
             template.basic_constraints_valid, template.is_ca,
             set(template.key_usage), list(template.ext_key_usage)))

    def test_ip_addresses_checked(self):
        """
        Only ``ipaddress`` objects are accepted as IP addresses.
        """
        self.assertRaises(
            InvariantException, CertificateTemplate,
            ip_addresses=[u"10.0.0.1"])


class EnsureTemplateTests(HostnameTestCase):
    """
    Tests for ``ensure_template``.
    """
    def test_fills_minimum(self):
        """
        A serial number, subject, validity period and basic constraints are
        filled in.
        """
        template = ensure_template(CertificateTemplate(), now=NOW)
        self.assertEqual(
            (True, DistinguishedName(common_name=u"c66", country=u"US"),
             MIDNIGHT, UTC.localize(datetime(2036, 10, 16, 23, 59)), True),
            (template.serial_number > 0, template.subject,
             template.not_before, template.not_after,
             template.basic_constraints_valid))

    def test_keeps_existing(self):
        """
        Fields that are already set are not changed.
        """
        not_before = UTC.localize(datetime(2020, 1, 1))
        not_after = UTC.localize(datetime(2021, 1, 1))
        template = CertificateTemplate(
            serial_number=7,
            subject=DistinguishedName(common_name=u"svc", country=u"DE"),
            not_before=not_before,
            not_after=not_after,
        )
        self.assertEqual(
            template.set(basic_constraints_valid=True),
            ensure_template(template, now=NOW))

    def test_not_after_from_not_before(self):
        """
        A missing end of validity is computed from an existing start.
        """
        not_before = UTC.localize(datetime(2024, 2, 29))
        template = ensure_template(
            CertificateTemplate(not_before=not_before), now=NOW)
        self.assertEqual(
            UTC.localize(datetime(2034, 2, 28, 23, 59)), template.not_after)

    def test_idempotent(self):
        """
        Filling a filled template changes nothing.
        """
        template = ensure_template(CertificateTemplate(), now=NOW)
        self.assertEqual(template, ensure_template(template, now=NOW))

    def test_hostname_error(self):
        """
        A template without a common name cannot be filled on a host without
        a name.
        """
        self.hostname = u""
        self.assertRaises(
            HostnameError, ensure_template, CertificateTemplate(), now=NOW)


class EnsureSelfSignedTests(HostnameTestCase):
    """
    Tests for ``ensure_self_signed``.
    """
    def test_default_issuer(self):
        """
        The issuer is named after the host and the local date, and the
        subject is copied from it.
        """
        template = ensure_self_signed(CertificateTemplate(), now=NOW)
        issuer = DistinguishedName(
            common_name=u"c66ca-" + NOW.astimezone().strftime(u"%y%m%d"),
            country=u"US")
        self.assertEqual((issuer, issuer), (template.issuer, template.subject))

    def test_canonical_name(self):
        """
        An issuer common name that is set is kept.
        """
        template = ensure_self_signed(
            CertificateTemplate(
                issuer=DistinguishedName(common_name=u"myca")),
            now=NOW)
        self.assertEqual(
            DistinguishedName(common_name=u"myca", country=u"US"),
            template.subject)

    def test_subject_with_country_kept(self):
        """
        A subject with a country is not replaced by the issuer.
        """
        subject = DistinguishedName(common_name=u"other", country=u"DE")
        template = ensure_self_signed(
            CertificateTemplate(subject=subject), now=NOW)
        self.assertEqual(subject, template.subject)

    def test_authority(self):
        """
        The template is an authority that can sign certificates and
        revocation lists, with the minimum fields filled.
        """
        template = ensure_self_signed(CertificateTemplate(), now=NOW)
        self.assertEqual(
            (True, True, {KeyUsage.CERT_SIGN, KeyUsage.CRL_SIGN}, MIDNIGHT),
            (template.is_ca, template.basic_constraints_valid,
             set(template.key_usage), template.not_before))

    def test_key_usage_preserved(self):
        """
        Existing key usages are kept.
        """
        template = ensure_self_signed(
            CertificateTemplate(key_usage=[KeyUsage.DIGITAL_SIGNATURE]),
            now=NOW)
        self.assertEqual(
            {KeyUsage.DIGITAL_SIGNATURE, KeyUsage.CERT_SIGN,
             KeyUsage.CRL_SIGN},
            set(template.key_usage))

    def test_idempotent(self):
        """
        Applying the policy twice gives the same template as once.
        """
        template = ensure_self_signed(CertificateTemplate(), now=NOW)
        self.assertEqual(template, ensure_self_signed(template, now=NOW))


class EnsureLeafTests(HostnameTestCase):
    """
    Tests for ``ensure_server`` and ``ensure_client``.
    """
    def test_server(self):
        """
        A server template can sign and authenticates servers.
        """
        template = ensure_server(CertificateTemplate(), now=NOW)
        self.assertEqual(
            ({KeyUsage.DIGITAL_SIGNATURE}, [ExtendedKeyUsage.SERVER_AUTH],
             False, True),
            (set(template.key_usage), list(template.ext_key_usage),
             template.is_ca, template.basic_constraints_valid))

    def test_client(self):
        """
        A client template can sign and authenticates clients.
        """
        template = ensure_client(CertificateTemplate(), now=NOW)
        self.assertEqual(
            ({KeyUsage.DIGITAL_SIGNATURE}, [ExtendedKeyUsage.CLIENT_AUTH]),
            (set(template.key_usage), list(template.ext_key_usage)))

    def test_usages_combined(self):
        """
        A client template filled for a server authenticates both, and keeps
        its other key usages.
        """
        template = ensure_server(
            CertificateTemplate(
                key_usage=[KeyUsage.KEY_ENCIPHERMENT],
                ext_key_usage=[ExtendedKeyUsage.CLIENT_AUTH]),
            now=NOW)
        self.assertEqual(
            ({KeyUsage.DIGITAL_SIGNATURE, KeyUsage.KEY_ENCIPHERMENT},
             [ExtendedKeyUsage.CLIENT_AUTH, ExtendedKeyUsage.SERVER_AUTH]),
            (set(template.key_usage), list(template.ext_key_usage)))

    def test_addresses_kept(self):
        """
        IP addresses and domain names are not touched.
        """
        template = ensure_server(
            CertificateTemplate(
                ip_addresses=[IPv4Address(u"10.0.0.1")],
                dns_names=[u"svc.example"]),
            now=NOW)
        self.assertEqual(
            ([IPv4Address(u"10.0.0.1")], [u"svc.example"]),
            (list(template.ip_addresses), list(template.dns_names)))

    @settings(max_examples=25, deadline=None)
    @given(dns_names=lists(domain_names, max_size=4),
           ensure=sampled_from([ensure_server, ensure_client]))
    def test_idempotent(self, dns_names, ensure):
        """
        Applying a leaf policy twice gives the same template as once.
        """
        template = ensure(CertificateTemplate(dns_names=dns_names), now=NOW)
        self.assertEqual(template, ensure(template, now=NOW))
