# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_script -*-

"""
The command-line certificate authority tool.
"""

import os
import sys

import textwrap

from cryptography import x509

from twisted.internet.defer import maybeDeferred, succeed
from twisted.python.filepath import FilePath
from twisted.python.usage import Options, UsageError

from zope.interface import implementer

from .common.script import (standard_options, ICommandLineScript,
                            ScriptRunner)

from ._cache import (
    DEFAULT_APP_NAME, credential_paths, default_directory, read_authority,
    read_or_create_credentials, write_credential_file,
)
from ._certificate import Certificate
from ._credentials import issue_client_credentials
from ._errors import CertificateAuthorityError
from ._interfaces import IPrivateKey
from ._keys import Algorithm
from ._parse import read_pem_file
from ._template import DistinguishedName


def algorithm_from_name(name):
    """
    :param unicode name: ``ed25519``, ``rsa`` or ``ecdsa`` in any case.

    :raise UsageError: For any other name.

    :return: The ``Algorithm`` constant.
    """
    try:
        return Algorithm.lookupByName(name.upper())
    except ValueError:
        raise UsageError(
            u"Unknown algorithm {!r}, choose one of: {}".format(
                name, u", ".join(
                    a.name.lower() for a in Algorithm.iterconstants())))


class PrettyOptions(Options):
    """
    Base class with improved output formatting for help text over
    ``twisted.python.usage.Options``. Includes ``self.helptext`` attribute
    in the wrapped help output of a CLI. Use ``self.helptext`` in place of
    ``self.longdesc``.
    """
    def __str__(self):
        base = super(PrettyOptions, self).__str__()
        helptext = self.helptext if getattr(self, "helptext", None) else ""
        description_list = []
        for line in helptext.splitlines():
            description_list.append('\n'.join(textwrap.wrap(line, 80)).strip())
        return base + '\n'.join(description_list)

    def getSynopsis(self):
        """
        Modified from ``twisted.python.usage.Options.getSynopsis``.

        Does not include the parent synopsis if inside a subcommand, so that
        ``localca create --help`` shows ``Usage: localca create ...`` rather
        than ``Usage: localca <command> [options] create ...``.
        """
        if self.parent is None:
            default = "Usage: %s%s" % (os.path.basename(sys.argv[0]),
                                       (self.longOpt and " [options]") or '')
        else:
            default = '%s' % ((self.longOpt and "[options]") or '')
        synopsis = getattr(self, "synopsis", default).rstrip()

        if self.parent is not None:
            commandName = getattr(
                self.parent, "command_name", os.path.basename(sys.argv[0]))
            synopsis = "Usage: %s %s" % (
                commandName, ' '.join((self.parent.subCommand, synopsis)))

        return synopsis

    def getUsage(self, width=None):
        usage = super(PrettyOptions, self).getUsage(width)
        if self.subCommand is not None:
            usage = usage + (
                "\n\nRun localca " + self.subCommand +
                " --help for command usage and help.\n\n")
        return usage


class _CacheOptionsMixin(object):
    """
    Options naming the cache directory of an application.
    """
    def _directory(self):
        if self["directory"] is None:
            return None
        return FilePath(self["directory"])

    def _app_name(self):
        return self["app-name"] or DEFAULT_APP_NAME


_APP_NAME_PARAMETER = [
    'app-name', 'a', DEFAULT_APP_NAME,
    'Application name, used in the authority file names and the default '
    'directory.']
_DIRECTORY_PARAMETER = [
    'directory', 'd', None,
    'Directory holding the credential files. Defaults to '
    '$XDG_DATA_HOME/<app-name> or ~/.local/share/<app-name>.']


@standard_options
class CreateOptions(_CacheOptionsMixin, PrettyOptions):
    """
    Command line options for ``localca create``.
    """

    helptext = """Create, or read back, the credentials of this host.

    On first use creates a self-signed certificate authority and a server
    certificate signed by it for the given IP addresses and domain names,
    and writes four owner-read-only PEM files. Later runs reuse the files.

    Usage:

    localca create [options] [address ...]

    Parameters:

    * address: An IP address or domain name for the server certificate.
      Defaults to 127.0.0.1, ::1 and localhost.
    """

    synopsis = "[options] [address ...]"

    optParameters = [
        _APP_NAME_PARAMETER,
        _DIRECTORY_PARAMETER,
        ['algorithm', None, 'ed25519',
         'Key algorithm: ed25519, rsa or ecdsa.'],
        ['ca-name', None, '',
         'Common name of the authority. Defaults to '
         '<hostname>ca-<YYMMDD>.'],
    ]

    def parseArgs(self, *addresses):
        self["addresses"] = list(addresses)

    def postOptions(self):
        self["algorithm"] = algorithm_from_name(self["algorithm"])

    def run(self):
        """
        Read or create the credentials and print the names of the files.
        """
        try:
            try:
                directory = self._directory()
                if directory is None:
                    directory = default_directory(self._app_name())
                read_or_create_credentials(
                    app_name=self._app_name(),
                    directory=directory,
                    algorithm=self["algorithm"],
                    canonical_name=self["ca-name"],
                    ips_and_domains=self["addresses"],
                )
                files = credential_paths(directory, self._app_name())
                self._sys_module.stdout.write(
                    u"Certificate: {}\n"
                    u"Private key: {}\n"
                    u"Authority certificate: {}\n"
                    u"Authority private key: {}\n".format(
                        *(path.path for path in files.in_write_order())))
            except CertificateAuthorityError as e:
                raise UsageError(str(e))
        except UsageError as e:
            raise SystemExit(u"Error: {error}".format(error=str(e)))
        return succeed(None)


@standard_options
class ClientCertificateOptions(_CacheOptionsMixin, PrettyOptions):
    """
    Command line options for ``localca create-client-certificate``.
    """

    helptext = """Create a new client certificate.

    Creates a client authentication certificate signed by the authority
    previously created by ``localca create`` for the same application.

    Usage:

    localca create-client-certificate <name>

    Parameters:

    * name: The common name of the client.
    """

    synopsis = "<name> [options]"

    optParameters = [
        _APP_NAME_PARAMETER,
        _DIRECTORY_PARAMETER,
        ['outputpath', 'o', None,
         ('Path to directory to write the client certificate. '
          'Defaults to current working directory.')],
    ]

    def parseArgs(self, name):
        self["name"] = name

    def run(self):
        """
        Issue a client certificate and write it to the output directory.

        :raise SystemExit: When the authority files cannot be read.
        """
        if self["outputpath"] is None:
            self["outputpath"] = os.getcwd()
        output = FilePath(self["outputpath"])

        try:
            try:
                authority = read_authority(
                    app_name=self._app_name(), directory=self._directory())
                credentials = issue_client_credentials(
                    authority, self["name"])
                certificate_path = output.child(
                    u"{}-cert.pem".format(self["name"]))
                key_path = output.child(u"{}-key.pem".format(self["name"]))
                write_credential_file(
                    certificate_path, credentials.certificate.pem())
                write_credential_file(
                    key_path, credentials.private_key.pem())
                self._sys_module.stdout.write(
                    u"Created {certificate} and {key}\n".format(
                        certificate=certificate_path.basename(),
                        key=key_path.basename()))
            except CertificateAuthorityError as e:
                raise UsageError(str(e))
        except UsageError as e:
            raise SystemExit(u"Error: {error}".format(error=str(e)))
        return succeed(None)


def describe(credential):
    """
    Describe a parsed PEM file for people.

    :param credential: A ``Certificate``, ``IPrivateKey`` or ``IPublicKey``.

    :return: ``list`` of ``unicode`` lines.
    """
    if not isinstance(credential, Certificate):
        if IPrivateKey.providedBy(credential):
            kind = u"private key"
        else:
            kind = u"public key"
        return [u"Kind: {}".format(kind),
                u"Algorithm: {}".format(credential.algorithm().name)]

    parsed = credential.parse()
    lines = [
        u"Kind: certificate",
        u"Algorithm: {}".format(credential.public_key().algorithm().name),
        u"Subject: {}".format(
            DistinguishedName.from_name(parsed.subject).common_name),
        u"Issuer: {}".format(
            DistinguishedName.from_name(parsed.issuer).common_name),
        u"Serial number: {}".format(parsed.serial_number),
        u"Not before: {}".format(parsed.not_valid_before_utc.isoformat()),
        u"Not after: {}".format(parsed.not_valid_after_utc.isoformat()),
    ]
    try:
        names = parsed.extensions.get_extension_for_class(
            x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        pass
    else:
        lines.extend(
            u"DNS name: {}".format(name)
            for name in names.get_values_for_type(x509.DNSName))
        lines.extend(
            u"IP address: {}".format(address)
            for address in names.get_values_for_type(x509.IPAddress))
    return lines


@standard_options
class ShowOptions(PrettyOptions):
    """
    Command line options for ``localca show``.
    """

    helptext = """Describe a PEM file.

    Prints what kind of credential the first PEM block of the file holds,
    and for certificates the subject, issuer, serial number, validity and
    addresses.
    """

    synopsis = "<file>"

    def parseArgs(self, path):
        self["path"] = FilePath(path)

    def run(self):
        try:
            try:
                credential = read_pem_file(self["path"])
                self._sys_module.stdout.write(
                    u"".join(line + u"\n" for line in describe(credential)))
            except CertificateAuthorityError as e:
                raise UsageError(str(e))
        except UsageError as e:
            raise SystemExit(u"Error: {error}".format(error=str(e)))
        return succeed(None)


@standard_options
class CAOptions(PrettyOptions):
    """
    Command line options for ``localca``.
    """
    helptext = """localca creates self-signed TLS credentials.

    A certificate authority and server certificates signed by it are cached
    per host so that a local TLS server presents the same certificate on
    every run, and clients only need to trust the authority once.
    """
    synopsis = "Usage: localca <command> [options]"

    subCommands = [
        ["create", None, CreateOptions,
         "Create or read back the credentials of this host."],
        ["create-client-certificate", None, ClientCertificateOptions,
         "Create a client certificate signed by the cached authority."],
        ["show", None, ShowOptions,
         "Describe a certificate or key file."],
        ]


@implementer(ICommandLineScript)
class CAScript(object):
    """
    Command-line script for ``localca``.
    """
    def main(self, reactor, options):
        if options.subCommand is not None:
            options.subOptions._sys_module = options._sys_module
            return maybeDeferred(options.subOptions.run)
        else:
            return options.opt_help()


def localca_main():
    return ScriptRunner(CAScript(), CAOptions()).main()
