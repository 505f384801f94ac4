"""Check that files installed by RPM are not modified outside of RPM in later layers."""

from __future__ import annotations

import enum
import io
import logging
import os
import posixpath
import re
import shutil
import stat
import tarfile
import tempfile
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from imagepolicy.check import (
    CERT_DOCUMENTATION_URL,
    Check,
    HelpText,
    ImageReference,
    Layer,
    Metadata,
)

logger = logging.getLogger(__name__)

_WHITEOUT_PREFIX = ".wh."
_CAPABILITY_RECORD = "SCHILY.xattr.security.capability"
_RPM_DIR = "var/lib/rpm"
_RED_HAT_VENDOR = "Red Hat, Inc."
_UNKNOWN_DIST = "unknown"
_PLATFORM_ID = re.compile(r'PLATFORM_ID="platform:([A-Za-z0-9]+)"')
_REGULAR_TYPES = (tarfile.REGTYPE, tarfile.AREGTYPE)
_THIRD_PARTY_WARNING = (
    "WARN: an rpm-installed file was modified outside of rpm, but appears to be from a "
    "third-party. This could be a failure in the future"
)

_EXCLUDED_DIRECTORIES = ("etc", "var", "run", "usr/lib/.build-id", "usr/tmp")
# Both "etc" and "etc/" are listed, as either can name the directory in a tarball.
_EXCLUDED_PATHS = frozenset(
    {"etc/resolv.conf", "etc/hostname", "etc", "etc/", "run", "run/"}
)
_EXCLUDED_PREFIX_SUFFIX = (("usr/", ".cache"),)


class _FileFlag(enum.IntFlag):
    CONFIG = 1 << 0
    DOC = 1 << 1
    ICON = 1 << 2
    MISSINGOK = 1 << 3
    NOREPLACE = 1 << 4
    SPECFILE = 1 << 5
    GHOST = 1 << 6
    LICENSE = 1 << 7
    README = 1 << 8
    PUBKEY = 1 << 11
    ARTIFACT = 1 << 12


_OK_FLAGS = (
    _FileFlag.CONFIG
    | _FileFlag.DOC
    | _FileFlag.LICENSE
    | _FileFlag.MISSINGOK
    | _FileFlag.README
    | _FileFlag.ARTIFACT
    | _FileFlag.GHOST
)


@dataclass(frozen=True)
class PackageMeta:
    """The package details used when judging a modification."""

    name: str = ""
    version: str = ""
    release: str = ""
    arch: str = ""
    vendor: str = ""
    install_time: int = 0


@dataclass(frozen=True)
class FileInfo:
    """Mode bits of a file as recorded in a layer."""

    mode: int = 0


@dataclass
class PackageFilesRef:
    """Files changed by a layer and the RPM state visible in that layer."""

    layer_files: dict[str, FileInfo] = field(default_factory=dict)
    # Keyed by name-version-release-arch.
    layer_packages: dict[str, PackageMeta] = field(default_factory=dict)
    # Maps a file path to the name-version-release-arch of its owner.
    layer_package_files: dict[str, str] = field(default_factory=dict)
    has_rpmdb: bool = False


@dataclass(frozen=True)
class RpmFile:
    """A file as recorded in the RPM database."""

    path: str
    mode: int = 0
    digest: str = ""
    size: int = 0
    flags: int = 0


@dataclass
class RpmPackage:
    """An installed package as read from the RPM database."""

    name: str = ""
    version: str = ""
    release: str = ""
    arch: str = ""
    vendor: str = ""
    install_time: int = 0
    base_names: list[str] = field(default_factory=list)
    dir_indexes: list[int] = field(default_factory=list)
    dir_names: list[str] = field(default_factory=list)
    file_flags: list[int] = field(default_factory=list)
    file_modes: list[int] = field(default_factory=list)
    file_sizes: list[int] = field(default_factory=list)
    file_digests: list[str] = field(default_factory=list)

    def _installed_file_names(self) -> list[str]:
        if not self.dir_names or not self.dir_indexes or not self.base_names:
            return []
        if len(self.dir_indexes) != len(self.base_names) or len(self.dir_names) > len(
            self.base_names
        ):
            raise ValueError(f"invalid rpm {self.name}")
        names = []
        for base_name, dir_index in zip(self.base_names, self.dir_indexes):
            try:
                directory = self.dir_names[dir_index]
            except IndexError as err:
                raise ValueError(f"invalid rpm {self.name}") from err
            names.append(_join(directory, base_name))
        return names

    def installed_files(self) -> list[RpmFile]:
        """Return the files this package installed; raise ValueError if its data is invalid."""

        def nth(values: Sequence, index: int, default):
            return values[index] if index < len(values) else default

        return [
            RpmFile(
                path=path,
                mode=nth(self.file_modes, i, 0),
                digest=nth(self.file_digests, i, ""),
                size=nth(self.file_sizes, i, 0),
                flags=nth(self.file_flags, i, 0),
            )
            for i, path in enumerate(self._installed_file_names())
        ]


PackageReader = Callable[[str], Iterable[RpmPackage]]


def _clean(path: str) -> str:
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    return _clean("/".join(present)) if present else ""


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _dir(path: str) -> str:
    directory = posixpath.dirname(path)
    return _clean(directory) if directory else "."


def _tar_members(layer: Layer) -> Iterator[tuple[tarfile.TarFile, tarfile.TarInfo]]:
    if not layer.content:
        return
    try:
        archive = tarfile.open(fileobj=io.BytesIO(layer.content), mode="r:")
    except tarfile.TarError as err:
        raise ValueError(f"reading tar: {err}") from err
    with archive:
        while True:
            try:
                member = archive.next()
            except tarfile.TarError as err:
                raise ValueError(f"reading tar: {err}") from err
            if member is None:
                return
            yield archive, member


def extract_package_name_version_release(
    packages: Iterable[RpmPackage],
) -> dict[str, PackageMeta]:
    """Map each package's name-version-release-arch to its metadata."""
    return {
        "-".join((pkg.name, pkg.version, pkg.release, pkg.arch)): PackageMeta(
            name=pkg.name,
            version=pkg.version,
            release=pkg.release,
            arch=pkg.arch,
            vendor=pkg.vendor,
            install_time=pkg.install_time,
        )
        for pkg in packages
    }


def extract_rpmdb(layer: Layer, package_reader: PackageReader | None) -> list[RpmPackage]:
    """Copy var/lib/rpm out of the layer and read its package list."""
    if package_reader is None:
        raise LookupError("no rpm database reader configured")
    with tempfile.TemporaryDirectory(prefix="rpmdb") as basepath:
        for archive, member in _tar_members(layer):
            if member.type != tarfile.DIRTYPE and member.type not in _REGULAR_TYPES:
                continue
            name = _clean(member.name)
            basename = _base(name)
            dirname = _dir(name)
            if basename.startswith(_WHITEOUT_PREFIX):
                continue
            if not _join(dirname, basename).startswith(_RPM_DIR):
                continue
            target = os.path.join(basepath, dirname, basename)
            if member.type == tarfile.DIRTYPE:
                os.makedirs(target, mode=member.mode & 0o7777, exist_ok=True)
                continue
            source = archive.extractfile(member)
            descriptor = os.open(
                target, os.O_RDWR | os.O_CREAT | os.O_TRUNC, member.mode & 0o7777
            )
            with os.fdopen(descriptor, "wb") as out:
                if source is not None:
                    shutil.copyfileobj(source, out)
        return list(package_reader(basepath))


def find_rpmdb(
    layer: Layer, package_reader: PackageReader | None
) -> tuple[bool, list[RpmPackage]]:
    """Return whether the layer holds a readable RPM database, and its packages."""
    try:
        packages = extract_rpmdb(layer, package_reader)
    except Exception as err:  # any failure means the layer has no usable database
        logger.debug("no rpm database read from layer %s: %s", layer.digest, err)
        return False, []
    logger.debug("found an RPM db in layer %s", layer.digest)
    return True, packages


def directory_is_excluded(path: str) -> bool:
    """Return True if the path is an excluded directory or lies within one."""
    for directory in _EXCLUDED_DIRECTORIES:
        if path.startswith(_clean(directory + "/")) or directory == path:
            logger.debug("directory excluded: %s", path)
            return True
    return False


def path_is_excluded(path: str) -> bool:
    """Return True if the path is excluded exactly as written."""
    if path in _EXCLUDED_PATHS:
        logger.debug("file excluded: %s", path)
        return True
    return False


def prefix_and_suffix_is_excluded(path: str) -> bool:
    """Return True if the path has an excluded prefix and suffix pair."""
    for prefix, suffix in _EXCLUDED_PREFIX_SUFFIX:
        if path.startswith(prefix) and path.endswith(suffix):
            logger.debug("prefix %r and suffix %r excluded: %s", prefix, suffix, path)
            return True
    return False


def normalize(path: str) -> str:
    """Clean a path and strip one leading slash; the root stays as it is."""
    if path == "/":
        return path
    return _clean(path.removeprefix("/"))


def installed_file_map_with_exclusions(packages: Iterable[RpmPackage]) -> dict[str, str]:
    """Map each installed, non-excluded file to its owner's name-version-release-arch."""
    owners: dict[str, str] = {}
    for pkg in packages:
        files = pkg.installed_files()
        directories = set(pkg.dir_names)
        for rpm_file in files:
            if rpm_file.path in directories:
                continue
            if rpm_file.flags & _OK_FLAGS:
                continue
            normalized = normalize(rpm_file.path)
            if (
                path_is_excluded(normalized)
                or directory_is_excluded(normalized)
                or prefix_and_suffix_is_excluded(normalized)
            ):
                continue
            # The same package built for a second architecture may own the same
            # file; the first architecture seen keeps ownership.
            existing = owners.get(normalized)
            if existing is not None:
                name, version, release, arch = existing.split("-")[:4]
                if (
                    name == pkg.name
                    and version == pkg.version
                    and release == pkg.release
                    and arch != pkg.arch
                ):
                    continue
            owners[normalized] = "-".join((pkg.name, pkg.version, pkg.release, pkg.arch))
    return owners


def generate_changes_for(layer: Layer) -> dict[str, FileInfo]:
    """Return the files added, modified or removed by the layer."""
    files: dict[str, FileInfo] = {}
    links: list[str] = []
    for _, member in _tar_members(layer):
        name = _clean(member.name)
        basename = _base(name)
        dirname = _dir(name)
        tombstone = basename.startswith(_WHITEOUT_PREFIX)
        if tombstone:
            basename = basename[len(_WHITEOUT_PREFIX):]

        if _CAPABILITY_RECORD in member.pax_headers:
            logger.debug("security capabilities found in layer tar, ignoring file %s", name)
            continue

        if (member.type == tarfile.DIRTYPE and tombstone) or member.type in _REGULAR_TYPES:
            files[_join(dirname, basename).removeprefix("/")] = FileInfo(member.mode)
        elif member.type in (tarfile.SYMTYPE, tarfile.LNKTYPE):
            files[name.removeprefix("/")] = FileInfo(member.mode)
            links.append(member.linkname.removeprefix("/"))

    # A link may precede its target in the archive, so targets are removed last.
    for link in links:
        files.pop(link, None)
    return files


def _previous_mode(
    layer_ids: Sequence[str], package_files: Mapping[str, PackageFilesRef], idx: int, path: str
) -> int:
    for layer_id in reversed(layer_ids[:idx]):
        ref = package_files.get(layer_id)
        if ref is not None and path in ref.layer_files:
            return ref.layer_files[path].mode
    return 0


class HasModifiedFilesCheck(Check):
    """Ensures no RPM-installed files were modified by later layers outside of RPM."""

    def __init__(self, package_reader: PackageReader | None = None) -> None:
        self._package_reader = package_reader

    def validate(self, image_ref: ImageReference) -> bool:
        try:
            layer_ids, package_files = self.gather_data_to_validate(image_ref)
            package_dist = self.parse_package_dist(image_ref.image_fs_path)
        except ValueError as err:
            raise ValueError(f"could not generate modified files list: {err}") from err
        return self.evaluate(layer_ids, package_files, package_dist)

    def parse_package_dist(self, extracted_image_fs_path: str) -> str:
        """Return the platform id from the image's os-release, or "unknown"."""
        path = os.path.join(extracted_image_fs_path, "etc", "os-release")
        try:
            with open(path, encoding="utf-8", errors="replace") as os_release:
                for line in os_release:
                    match = _PLATFORM_ID.search(line)
                    if match:
                        return match.group(1)
        except OSError as err:
            raise ValueError(f"could not open os-release: {err}") from err
        return _UNKNOWN_DIST

    def gather_data_to_validate(
        self, image_ref: ImageReference
    ) -> tuple[list[str], dict[str, PackageFilesRef]]:
        """Return the unique layer ids in order and each layer's file and package data."""
        image = image_ref.image_info
        if image is None:
            raise ValueError("image reference invalid")

        layer_ids: list[str] = []
        refs: dict[str, PackageFilesRef] = {}
        for idx, layer in enumerate(image.layers):
            # The index keeps layers with repeated digests apart.
            layer_id = f"{idx:02d}-{layer.digest}"
            logger.debug(
                "generating unique layer ID %s for layer %s (diff id %s)",
                layer_id,
                layer.digest,
                layer.diff_id or _UNKNOWN_DIST,
            )
            layer_ids.append(layer_id)

            files = generate_changes_for(layer)
            found, packages = find_rpmdb(layer, self._package_reader)
            if not found:
                logger.debug("could not find rpm database in layer %s", layer_id)
                if idx > 0:
                    # The database was not touched, so the previous layer's state holds.
                    last = refs[layer_ids[idx - 1]]
                    refs[layer_id] = PackageFilesRef(
                        layer_files=files,
                        layer_packages=last.layer_packages,
                        layer_package_files=last.layer_package_files,
                        has_rpmdb=False,
                    )
                    continue
                packages = []

            refs[layer_id] = PackageFilesRef(
                layer_files=files,
                layer_packages=extract_package_name_version_release(packages),
                layer_package_files=installed_file_map_with_exclusions(packages),
                has_rpmdb=True,
            )
        return layer_ids, refs

    def evaluate(
        self,
        layer_ids: Sequence[str],
        package_files: Mapping[str, PackageFilesRef],
        package_dist: str,
    ) -> bool:
        """Return False if any package file was modified in a disallowed way."""
        disallowed = False
        empty = PackageFilesRef()
        for idx, layer_id in enumerate(layer_ids):
            if idx == 0:
                # Nothing earlier to compare against.
                continue
            ref = package_files.get(layer_id, empty)
            previous = package_files.get(layer_ids[idx - 1], empty)
            for modified_file, modified_info in ref.layer_files.items():
                if modified_file not in ref.layer_package_files:
                    continue
                previous_found = modified_file in previous.layer_package_files
                if not previous_found and ref.has_rpmdb:
                    # A file of a newly installed package.
                    continue
                previous_version = previous.layer_package_files.get(modified_file, "")
                current_version = ref.layer_package_files[modified_file]
                previous_package = previous.layer_packages.get(previous_version, PackageMeta())
                current_package = ref.layer_packages.get(current_version, PackageMeta())

                if previous_version == current_version:
                    previous_mode = _previous_mode(layer_ids, package_files, idx, modified_file)
                    setuid_removed = bool(previous_mode & stat.S_ISUID) and not (
                        modified_info.mode & stat.S_ISUID
                    )
                    setgid_removed = bool(previous_mode & stat.S_ISGID) and not (
                        modified_info.mode & stat.S_ISGID
                    )
                    if setuid_removed or setgid_removed:
                        logger.debug("setuid/setgid bit removed: %s", modified_file)
                        continue
                    if (
                        package_dist not in current_package.release
                        and package_dist != _UNKNOWN_DIST
                    ):
                        logger.warning("%s: %s", _THIRD_PARTY_WARNING, modified_file)
                        continue
                    if (
                        current_package.vendor != _RED_HAT_VENDOR
                        and previous_package.vendor != _RED_HAT_VENDOR
                    ):
                        logger.warning("%s: %s", _THIRD_PARTY_WARNING, modified_file)
                        continue
                    if current_package.install_time > previous_package.install_time:
                        logger.debug(
                            "package %s appears to have been re-installed in the same layer",
                            current_package.name,
                        )
                        continue
                    logger.info(
                        "found disallowed modification in layer %s: %s", layer_id, modified_file
                    )
                    disallowed = True
                    continue

                previous_os_release = package_dist in previous_package.release
                current_os_release = package_dist in current_package.release
                if previous_os_release and not current_os_release:
                    logger.info("mismatch in OS release: %s", modified_file)
                    disallowed = True
                    continue
                if previous_package.arch != current_package.arch:
                    logger.info("mismatch in package architecture: %s", modified_file)
                    disallowed = True
                    continue
                # Otherwise this is a package update, which is allowed.
        return not disallowed

    def name(self) -> str:
        return "HasModifiedFiles"

    def help(self) -> HelpText:
        return HelpText(
            message=(
                "Check HasModifiedFiles encountered an error. "
                "Please review the preflight.log file for more information."
            ),
            suggestion="Do not modify any files installed by RPM in the base Red Hat layer",
        )

    def metadata(self) -> Metadata:
        return Metadata(
            description=(
                "Checks that no files installed via RPM in the base Red Hat layer have been "
                "modified"
            ),
            level="best",
            knowledge_base_url=CERT_DOCUMENTATION_URL,
            check_url=CERT_DOCUMENTATION_URL,
        )