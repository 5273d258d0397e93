"""Metadata extraction from the decoded and raw trees of an APK.

Every facet is best-effort: a missing file or directory yields an empty value
for that facet only. A missing manifest is the one condition reported at
warning level, because every identity fact then stays ``unknown``.
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from collections import Counter
from pathlib import Path

from sdkscope.models.apk import (
    AppMetadata,
    AssetSummary,
    CodePackage,
    HardwareFeature,
    KotlinInfo,
    LibraryProperties,
    PackageManifestFacts,
    VersionStamp,
)
from sdkscope.utils.apk import read_identity

logger = logging.getLogger(__name__)

ANDROID_NS = "{http://schemas.android.com/apk/res/android}"

MANIFEST_NAME = "AndroidManifest.xml"
APKTOOL_YML = "apktool.yml"
META_INF = "META-INF"
JAR_MANIFEST = "MANIFEST.MF"
GRADLE_APP_METADATA = "META-INF/com/android/build/gradle/app-metadata.properties"
KOTLIN_TOOLING_METADATA = "kotlin-tooling-metadata.json"
KOTLIN_STDLIB_STAMP = "org.jetbrains.kotlin_kotlin-stdlib"

PERMISSION_TAGS = (
    "uses-permission",
    "uses-permission-sdk-23",
    "uses-permission-sdk-m",
)

# Keys of interest in apktool.yml (versionInfo / sdkInfo sections)
APKTOOL_YML_KEYS = {
    "versionCode": "version_code",
    "versionName": "version_name",
    "minSdkVersion": "min_sdk",
    "targetSdkVersion": "target_sdk",
}
YML_LINE_PATTERN = re.compile(r"^\s*(?P<key>\w+):\s*'?(?P<value>[^'\n]*?)'?\s*$")

LANGUAGE_PATTERN = re.compile(r"^[a-z]{2,3}$")
REGION_PATTERN = re.compile(r"^r([A-Z]{2}|[0-9]{3})$")
NON_LANGUAGE_QUALIFIERS = frozenset({"car", "mcc", "mnc"})

# Only this many leading path levels name a code package
CODE_PACKAGE_DEPTH = 2


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Could not read %s: %s", path, e)
        return None


def _parse_properties(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            key, sep, value = line.partition(":")
        if sep:
            values[key.strip()] = value.strip()
    return values


def _tree_stats(root: Path) -> tuple[int, int]:
    files = 0
    size = 0
    for path in root.rglob("*"):
        if path.is_file():
            files += 1
            size += path.stat().st_size
    return files, size


def locale_from_qualifiers(dir_name: str) -> str | None:
    """Return the locale of a ``values-*`` directory, or None.

    ``values-de`` gives ``de``, ``values-pt-rBR`` gives ``pt-BR`` and
    ``values-b+sr+Latn`` gives ``sr-Latn``.
    """
    if not dir_name.startswith("values-"):
        return None

    qualifiers = dir_name[len("values-") :].split("-")
    first = qualifiers[0]
    if first.startswith("b+"):
        return "-".join(part for part in first[2:].split("+") if part) or None

    if not LANGUAGE_PATTERN.match(first) or first in NON_LANGUAGE_QUALIFIERS:
        return None

    if len(qualifiers) > 1:
        region = REGION_PATTERN.match(qualifiers[1])
        if region:
            return f"{first}-{region.group(1)}"
    return first


class MetadataExtractor:
    """Pull structured facts out of a decoded tree and its raw twin."""

    def __init__(
        self,
        decoded_dir: Path,
        raw_dir: Path | None = None,
        apk_path: Path | None = None,
    ):
        """Initialize metadata extractor.

        Args:
            decoded_dir: apktool output directory.
            raw_dir: Plain ZIP extraction of the same APK.
            apk_path: APK file, used to read identity facts apktool did not
                expose.
        """
        self.decoded_dir = decoded_dir
        self.raw_dir = raw_dir
        self.apk_path = apk_path
        self._manifest_root: ET.Element | None = None
        self._manifest_loaded = False

    def _raw_path(self, *parts: str) -> Path | None:
        if self.raw_dir is None:
            return None
        return self.raw_dir.joinpath(*parts)

    def _manifest(self) -> ET.Element | None:
        if not self._manifest_loaded:
            self._manifest_loaded = True
            path = self.decoded_dir / MANIFEST_NAME
            if not path.is_file():
                logger.warning("Manifest not found: %s", path)
                return None
            try:
                self._manifest_root = ET.parse(path).getroot()
            except (ET.ParseError, OSError) as e:
                logger.warning("Could not parse %s: %s", path, e)
        return self._manifest_root

    def _resolve_string(self, value: str) -> str:
        """Resolve an ``@string/name`` reference from res/values/strings.xml."""
        if not value.startswith("@string/"):
            return value

        strings_xml = self.decoded_dir / "res" / "values" / "strings.xml"
        if not strings_xml.is_file():
            return value

        name = value[len("@string/") :]
        try:
            root = ET.parse(strings_xml).getroot()
        except (ET.ParseError, OSError):
            return value

        for element in root.iter("string"):
            if element.get("name") == name:
                return "".join(element.itertext()).strip() or value
        return value

    def _apktool_yml_facts(self) -> dict[str, str]:
        text = _read_text(self.decoded_dir / APKTOOL_YML)
        if text is None:
            return {}

        facts: dict[str, str] = {}
        for line in text.splitlines():
            match = YML_LINE_PATTERN.match(line)
            if match and match.group("key") in APKTOOL_YML_KEYS:
                value = match.group("value").strip()
                if value and value != "null":
                    facts[APKTOOL_YML_KEYS[match.group("key")]] = value
        return facts

    def extract_facts(self) -> PackageManifestFacts:
        """Read app identity and platform levels."""
        values: dict[str, str] = {}
        root = self._manifest()
        if root is not None:
            candidates = {
                "package_name": root.get("package"),
                "version_name": root.get(f"{ANDROID_NS}versionName"),
                "version_code": root.get(f"{ANDROID_NS}versionCode"),
                "compile_sdk": root.get(f"{ANDROID_NS}compileSdkVersion")
                or root.get("platformBuildVersionCode"),
            }
            uses_sdk = root.find("uses-sdk")
            if uses_sdk is not None:
                candidates["min_sdk"] = uses_sdk.get(f"{ANDROID_NS}minSdkVersion")
                candidates["target_sdk"] = uses_sdk.get(
                    f"{ANDROID_NS}targetSdkVersion"
                )
            application = root.find("application")
            if application is not None:
                label = application.get(f"{ANDROID_NS}label")
                if label:
                    candidates["app_name"] = self._resolve_string(label)
            values = {key: value for key, value in candidates.items() if value}

        for key, value in self._apktool_yml_facts().items():
            values.setdefault(key, value)

        facts = PackageManifestFacts(**values)
        if facts.missing_fields() and self.apk_path is not None:
            identity = read_identity(self.apk_path)
            for key in facts.missing_fields():
                if key in identity:
                    setattr(facts, key, identity[key])

        if not facts.is_known:
            logger.warning("Package identity unknown; using placeholders")
        return facts

    def extract_version_stamps(self) -> list[VersionStamp]:
        """Read ``META-INF/*.version`` files."""
        meta_inf = self._raw_path(META_INF)
        if meta_inf is None or not meta_inf.is_dir():
            return []

        stamps = []
        for path in sorted(meta_inf.glob("*.version")):
            text = _read_text(path)
            if text is None:
                continue
            lines = [line.strip() for line in text.splitlines() if line.strip()]
            stamps.append(
                VersionStamp(identifier=path.stem, version=lines[0] if lines else "")
            )
        return sorted(stamps, key=lambda s: s.identifier)

    def extract_library_properties(self) -> list[LibraryProperties]:
        """Read ``*.properties`` library descriptors that carry a version."""
        if self.raw_dir is None or not self.raw_dir.is_dir():
            return []

        candidates = list(self.raw_dir.glob("*.properties"))
        meta_inf = self.raw_dir / META_INF
        if meta_inf.is_dir():
            candidates.extend(meta_inf.glob("*.properties"))

        found = []
        for path in sorted(candidates):
            text = _read_text(path)
            if text is None:
                continue
            values = _parse_properties(text)
            version = values.get("version")
            if not version:
                continue
            found.append(
                LibraryProperties(
                    name=values.get("client") or path.stem,
                    version=version,
                    path=path.relative_to(self.raw_dir).as_posix(),
                )
            )
        return found

    def extract_permissions(self) -> list[str]:
        """Return declared permissions, sorted and distinct."""
        root = self._manifest()
        if root is None:
            return []

        names = set()
        for tag in PERMISSION_TAGS:
            for element in root.iter(tag):
                name = element.get(f"{ANDROID_NS}name")
                if name:
                    names.add(name)
        return sorted(names)

    def extract_features(self) -> list[HardwareFeature]:
        """Return declared hardware features with their required flag."""
        root = self._manifest()
        if root is None:
            return []

        features: dict[str, HardwareFeature] = {}
        for element in root.iter("uses-feature"):
            name = element.get(f"{ANDROID_NS}name")
            if not name:
                gl_version = element.get(f"{ANDROID_NS}glEsVersion")
                if not gl_version:
                    continue
                try:
                    raw = int(gl_version, 0)
                    name = f"OpenGL ES {raw >> 16}.{raw & 0xFFFF}"
                except ValueError:
                    name = f"OpenGL ES {gl_version}"
            required = element.get(f"{ANDROID_NS}required", "true").lower() != "false"
            features[name] = HardwareFeature(name=name, required=required)
        return [features[name] for name in sorted(features)]

    def extract_build_info(self) -> dict[str, str]:
        """Return build provenance from the JAR manifest and Gradle metadata."""
        info: dict[str, str] = {}

        jar_manifest = self._raw_path(META_INF, JAR_MANIFEST)
        if jar_manifest is not None and jar_manifest.is_file():
            text = _read_text(jar_manifest) or ""
            # Main section ends at the first blank line
            main_section = text.replace("\r\n", "\n").split("\n\n", 1)[0]
            key = None
            for line in main_section.split("\n"):
                if line.startswith(" ") and key:
                    info[key] += line[1:]
                    continue
                name, sep, value = line.partition(":")
                if sep and name.strip():
                    key = name.strip()
                    info[key] = value.strip()

        gradle = self._raw_path(*GRADLE_APP_METADATA.split("/"))
        if gradle is not None and gradle.is_file():
            info.update(_parse_properties(_read_text(gradle) or ""))

        return dict(sorted(info.items()))

    def extract_kotlin(self, stamps: list[VersionStamp]) -> KotlinInfo:
        """Detect the Kotlin runtime and its version."""
        if self.raw_dir is None or not self.raw_dir.is_dir():
            return KotlinInfo()

        version = next(
            (
                stamp.version
                for stamp in stamps
                if stamp.identifier.startswith(KOTLIN_STDLIB_STAMP) and stamp.version
            ),
            None,
        )

        tooling = self.raw_dir / KOTLIN_TOOLING_METADATA
        if version is None and tooling.is_file():
            try:
                data = json.loads(_read_text(tooling) or "")
                plugin_version = data.get("buildPluginVersion")
                if isinstance(plugin_version, str) and plugin_version:
                    version = plugin_version
            except (ValueError, AttributeError):
                logger.debug("Malformed %s", tooling)

        meta_inf = self.raw_dir / META_INF
        present = (
            version is not None
            or (self.raw_dir / "kotlin").is_dir()
            or tooling.is_file()
            or (meta_inf.is_dir() and any(meta_inf.glob("*.kotlin_module")))
        )
        return KotlinInfo(present=present, version=version)

    def extract_assets(self) -> AssetSummary:
        """Count asset and resource files and bytes, and list locales."""
        summary = AssetSummary()

        assets = self._raw_path("assets")
        if assets is None or not assets.is_dir():
            assets = self.decoded_dir / "assets"
        if assets.is_dir():
            summary.asset_files, summary.asset_bytes = _tree_stats(assets)

        res = self.decoded_dir / "res"
        if res.is_dir():
            summary.resource_files, summary.resource_bytes = _tree_stats(res)
            locales = {
                locale
                for child in res.iterdir()
                if child.is_dir() and (locale := locale_from_qualifiers(child.name))
            }
            summary.locales = sorted(locales)

        return summary

    def extract_code_packages(self) -> list[CodePackage]:
        """Count smali classes per top-level package across all smali dirs."""
        if not self.decoded_dir.is_dir():
            return []

        counts: Counter[str] = Counter()
        for smali_dir in self.decoded_dir.iterdir():
            if not (smali_dir.is_dir() and smali_dir.name.startswith("smali")):
                continue
            for path in smali_dir.rglob("*.smali"):
                parts = path.relative_to(smali_dir).parts[:-1]
                name = ".".join(parts[:CODE_PACKAGE_DEPTH]) if parts else "(default)"
                counts[name] += 1

        return [
            CodePackage(name=name, class_count=counts[name]) for name in sorted(counts)
        ]

    def extract(self) -> AppMetadata:
        """Run every extraction facet."""
        stamps = self.extract_version_stamps()
        return AppMetadata(
            facts=self.extract_facts(),
            version_stamps=stamps,
            library_properties=self.extract_library_properties(),
            permissions=self.extract_permissions(),
            features=self.extract_features(),
            build_info=self.extract_build_info(),
            kotlin=self.extract_kotlin(stamps),
            assets=self.extract_assets(),
            code_packages=self.extract_code_packages(),
        )

