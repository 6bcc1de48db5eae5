# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_cache -*-

"""
A per-host credential cache on the filesystem.

The first call for an application creates an authority and a server
certificate and writes four owner-read-only PEM files; later calls read the
server certificate and key back.  Nothing is ever rewritten unless one of the
server files is missing, in which case all four are regenerated.
"""

import errno
import os

from eliot import Field, MessageType
from pyrsistent import PClass, field
from twisted.python.filepath import FilePath

from ._ca import SelfSignedAuthority
from ._certificate import Certificate
from ._credentials import create_credentials
from ._errors import (
    CredentialTypeError, InconsistentCredentialsError, PathError,
)
from ._interfaces import IPrivateKey
from ._keys import Algorithm
from ._parse import read_pem_file
from ._template import short_hostname


DEFAULT_APP_NAME = u"test"
CREDENTIAL_FILE_MODE = 0o400
DIRECTORY_MODE = 0o700

_PATH_FIELD = Field.for_types(
    u"path", [str], u"The path of a credential file.")
_DIRECTORY_FIELD = Field.for_types(
    u"directory", [str], u"The directory holding credential files.")

LOG_CACHE_WRITE = MessageType(
    u"localca:cache:write", [_PATH_FIELD],
    u"A credential file was written.")
LOG_CACHE_HIT = MessageType(
    u"localca:cache:hit", [_DIRECTORY_FIELD],
    u"Existing credentials were read from the cache.")


class CredentialFiles(PClass):
    """
    The locations of the four cached credential files.

    :ivar FilePath certificate: ``<host>-cert.pem``.
    :ivar FilePath private_key: ``<host>-key.pem``.
    :ivar FilePath ca_certificate: ``<app>-ca.pem``.
    :ivar FilePath ca_private_key: ``<app>-ca-key.pem``.
    """
    certificate = field(type=FilePath, mandatory=True)
    private_key = field(type=FilePath, mandatory=True)
    ca_certificate = field(type=FilePath, mandatory=True)
    ca_private_key = field(type=FilePath, mandatory=True)

    def in_write_order(self):
        return [self.certificate, self.private_key,
                self.ca_certificate, self.ca_private_key]


def default_directory(app_name=DEFAULT_APP_NAME):
    """
    Find, and create if necessary, the data directory of an application:
    ``$XDG_DATA_HOME/<app_name>``, or ``~/.local/share/<app_name>`` when
    ``XDG_DATA_HOME`` is unset.

    :param unicode app_name: The application name.

    :raise PathError: If the directory cannot be created.

    :return: ``FilePath`` of the directory.
    """
    base = os.environ.get("XDG_DATA_HOME")
    if not base:
        base = os.path.join(os.path.expanduser(u"~"), u".local", u"share")
    directory = FilePath(base).child(app_name)
    if not directory.isdir():
        try:
            os.makedirs(directory.path, DIRECTORY_MODE)
        except OSError as e:
            raise PathError.from_os_error(
                u"Unable to create credential directory.", e) from e
    return directory


def credential_paths(directory, app_name=DEFAULT_APP_NAME):
    """
    :param FilePath directory: The directory holding the files.
    :param unicode app_name: The application name.

    :raise HostnameError: If the host name is empty.

    :return: ``CredentialFiles``.
    """
    hostname = short_hostname()
    return CredentialFiles(
        certificate=directory.child(u"{}-cert.pem".format(hostname)),
        private_key=directory.child(u"{}-key.pem".format(hostname)),
        ca_certificate=directory.child(u"{}-ca.pem".format(app_name)),
        ca_private_key=directory.child(u"{}-ca-key.pem".format(app_name)),
    )


def _check_pair(certificate, private_key, paths):
    """
    Check that a certificate and private key read from files belong
    together.
    """
    if not isinstance(certificate, Certificate):
        raise CredentialTypeError(
            u"Not a certificate: {}".format(paths[0].path))
    if not IPrivateKey.providedBy(private_key):
        raise CredentialTypeError(
            u"Not a private key: {}".format(paths[1].path))
    if not certificate.public_key().equal(private_key.public_key()):
        raise InconsistentCredentialsError(
            u"Private key {} does not match certificate {}".format(
                paths[1].path, paths[0].path))


def read_credentials(files):
    """
    Read the cached server certificate and private key.

    :param CredentialFiles files: Where to look.

    :raise CredentialTypeError: If a file holds the wrong kind of PEM block.
    :raise InconsistentCredentialsError: If the key does not match the
        certificate.
    :raise PathError: If a file exists but cannot be read.

    :return: ``tuple`` of ``Certificate`` and ``IPrivateKey``, or ``None``
        if either file is missing.
    """
    certificate = read_pem_file(files.certificate, allow_missing=True)
    private_key = read_pem_file(files.private_key, allow_missing=True)
    if certificate is None or private_key is None:
        return None
    _check_pair(
        certificate, private_key, (files.certificate, files.private_key))
    return certificate, private_key


def write_credential_file(path, content, logger=None):
    """
    Write a credential file readable only by its owner.

    The content is written to a new temporary sibling which is then renamed
    over ``path``, so readers never see a partially written file.

    :param FilePath path: The file to write.
    :param unicode content: The PEM text.
    :param eliot.Logger logger: Where to log, ``None`` for the default.

    :raise PathError: If the file cannot be written.
    """
    temporary = path.temporarySibling(u".tmp")
    original_umask = os.umask(0)
    try:
        with os.fdopen(os.open(
            temporary.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL,
            CREDENTIAL_FILE_MODE
        ), "w") as credential_file:
            credential_file.write(content)
        temporary.moveTo(path)
    except (IOError, OSError) as e:
        raise PathError.from_os_error(
            u"Unable to write credential file.", e) from e
    finally:
        os.umask(original_umask)
    LOG_CACHE_WRITE(path=path.path).write(logger)


def _resolve_directory(app_name, directory):
    if not directory:
        return default_directory(app_name)
    if isinstance(directory, FilePath):
        return directory
    return FilePath(directory)


def read_or_create_credentials(app_name=u"", directory=None,
                               algorithm=Algorithm.ED25519,
                               canonical_name=u"", logger=None,
                               ips_and_domains=(), now=None):
    """
    Read the server credentials of this host, creating them on first use.

    On a miss a new authority and server certificate are created with
    ``create_credentials`` and written in the order server certificate,
    server key, authority certificate, authority key.  A write error aborts
    the operation leaving earlier files in place; the next call regenerates
    everything if a server file is missing.

    :param unicode app_name: Application name, empty for
        ``DEFAULT_APP_NAME``.
    :param directory: ``FilePath`` or path of the directory, empty or
        ``None`` for ``default_directory(app_name)``.
    :param algorithm: ``Algorithm`` used when creating.
    :param unicode canonical_name: Authority name used when creating.
    :param eliot.Logger logger: Where to log, ``None`` for the default.
    :param ips_and_domains: Addresses used when creating.
    :param datetime now: Timezone aware current time, for tests.

    :return: ``tuple`` of the server ``Certificate`` and ``IPrivateKey``.
    """
    if not app_name:
        app_name = DEFAULT_APP_NAME
    directory = _resolve_directory(app_name, directory)
    files = credential_paths(directory, app_name)

    existing = read_credentials(files)
    if existing is not None:
        LOG_CACHE_HIT(directory=directory.path).write(logger)
        return existing

    credentials = create_credentials(
        algorithm, canonical_name=canonical_name,
        ips_and_domains=ips_and_domains, now=now, logger=logger)
    contents = [
        credentials.certificate.pem(),
        credentials.private_key.pem(),
        credentials.ca_certificate.pem(),
        credentials.ca_private_key.pem(),
    ]
    for path, content in zip(files.in_write_order(), contents):
        write_credential_file(path, content, logger)
    return credentials.certificate, credentials.private_key


def read_authority(app_name=u"", directory=None):
    """
    Rebuild the cached authority of an application so it can issue more
    certificates.

    :param unicode app_name: Application name, empty for
        ``DEFAULT_APP_NAME``.
    :param directory: ``FilePath`` or path of the directory, empty or
        ``None`` for ``default_directory(app_name)``.

    :raise PathError: If a file is missing or unreadable.  A missing file
        suggests running ``localca create`` first.
    :raise CredentialTypeError: If a file holds the wrong kind of PEM block.
    :raise InconsistentCredentialsError: If the key does not match the
        certificate.

    :return: A validated ``SelfSignedAuthority``.
    """
    if not app_name:
        app_name = DEFAULT_APP_NAME
    directory = _resolve_directory(app_name, directory)
    files = credential_paths(directory, app_name)
    try:
        certificate = read_pem_file(files.ca_certificate)
        private_key = read_pem_file(files.ca_private_key)
    except PathError as e:
        # Re-raise, but with a more specific message.
        error = u"Unable to load certificate authority file."
        if e.code == errno.ENOENT:
            error = error + (u" Please run `localca create` to "
                             u"generate a new certificate authority.")
        raise PathError(error, e.filename, e.code, e.failure) from e
    _check_pair(
        certificate, private_key,
        (files.ca_certificate, files.ca_private_key))
    authority = SelfSignedAuthority(
        certificate=certificate, private_key=private_key)
    authority.validate()
    return authority
