"""Shared fixtures: split containers and decoded/raw package trees."""

import io
import zipfile
from pathlib import Path

import pytest

from sdkscope.models.apk import DecodedPackage

MANIFEST_XML = """\
<?xml version="1.0" encoding="utf-8" standalone="no"?><manifest xmlns:android="http://schemas.android.com/apk/res/android" android:compileSdkVersion="34" package="com.example.viewer" platformBuildVersionCode="34">
    <uses-permission android:name="android.permission.INTERNET"/>
    <uses-permission android:name="android.permission.CAMERA"/>
    <uses-permission android:name="android.permission.INTERNET"/>
    <uses-feature android:name="android.hardware.camera" android:required="false"/>
    <uses-feature android:glEsVersion="0x00020000" android:required="true"/>
    <application android:label="@string/app_name" android:name="com.example.viewer.App">
        <activity android:exported="true" android:name="com.example.viewer.MainActivity"/>
        <meta-data android:name="com.pspdfkit.ui.license" android:value="@string/license"/>
    </application>
</manifest>
"""

APKTOOL_YML = """\
!!brut.androlib.meta.MetaInfo
apkFileName: viewer.apk
sdkInfo:
  minSdkVersion: '24'
  targetSdkVersion: '34'
versionInfo:
  versionCode: '4210'
  versionName: 4.2.1
"""

JAR_MANIFEST = (
    "Manifest-Version: 1.0\r\n"
    "Built-By: Signflinger\r\n"
    "Created-By: Android Gradle 8.2.0\r\n"
    "\r\n"
    "Name: classes.dex\r\n"
    "SHA-256-Digest: abc=\r\n"
)

DECODED_FILES: dict[str, str | bytes] = {
    "AndroidManifest.xml": MANIFEST_XML,
    "apktool.yml": APKTOOL_YML,
    "res/values/strings.xml": (
        '<?xml version="1.0" encoding="utf-8"?>\n<resources>\n'
        '    <string name="app_name">PDF Viewer</string>\n'
        '    <string name="license">LICENSE-KEY</string>\n'
        "</resources>\n"
    ),
    "res/values-de/strings.xml": (
        '<resources>\n    <string name="app_name">PDF-Betrachter</string>\n'
        "</resources>\n"
    ),
    "res/values-pt-rBR/strings.xml": (
        '<resources>\n    <string name="app_name">Leitor de PDF</string>\n'
        "</resources>\n"
    ),
    "res/values-v21/styles.xml": "<resources>\n</resources>\n",
    "res/layout/activity_main.xml": (
        '<LinearLayout xmlns:android="http://schemas.android.com/apk/res/android">\n'
        '    <com.pspdfkit.ui.PdfThumbnailBar android:id="@+id/thumbnails"/>\n'
        "</LinearLayout>\n"
    ),
    "res/drawable/icon.png": b"\x89PNG\r\n\x1a\n",
    "smali/com/pspdfkit/ui/PdfFragment.smali": (
        ".class public Lcom/pspdfkit/ui/PdfFragment;\n"
        ".super Landroidx/fragment/app/Fragment;\n"
    ),
    "smali/com/pspdfkit/PSPDFKit.smali": (
        ".class public final Lcom/pspdfkit/PSPDFKit;\n.super Ljava/lang/Object;\n"
    ),
    "smali/com/example/viewer/MainActivity.smali": (
        ".class public Lcom/example/viewer/MainActivity;\n"
        ".method protected onCreate()V\n"
        "    invoke-static {}, Lcom/pspdfkit/PSPDFKit;->initialize()V\n"
        ".end method\n"
    ),
    "smali_classes2/androidx/core/app/ActivityCompat.smali": (
        ".class public Landroidx/core/app/ActivityCompat;\n"
    ),
}

RAW_FILES: dict[str, str | bytes] = {
    "AndroidManifest.xml": b"\x03\x00\x08\x00binary",
    "classes.dex": b"dex\n035\x00",
    "lib/arm64-v8a/libpspdfkit.so": b"\x7fELF" + b"\x00" * 96,
    "lib/arm64-v8a/libc++_shared.so": b"\x7fELF" + b"\x00" * 28,
    "lib/armeabi-v7a/libpspdfkit.so": b"\x7fELF" + b"\x00" * 60,
    "assets/pspdfkit/fonts.dat": b"font-data",
    "assets/pspdfkit-annotations.json": "{}",
    "assets/config.json": '{"theme": "dark"}',
    "META-INF/androidx.core_core.version": "1.12.0\n",
    "META-INF/com.pspdfkit_pspdfkit.version": "2024.1.0\n",
    "META-INF/org.jetbrains.kotlinx_kotlinx-coroutines-core.version": "1.7.3\n",
    "META-INF/MANIFEST.MF": JAR_MANIFEST,
    "META-INF/com/android/build/gradle/app-metadata.properties": (
        "appMetadataVersion=1.1\nandroidGradlePluginVersion=8.2.0\n"
    ),
    "kotlin-tooling-metadata.json": (
        '{"buildSystem": "Gradle", "buildPluginVersion": "1.9.22"}'
    ),
    "play-services-basement.properties": (
        "version=18.3.0\nclient=play-services-basement\n"
    ),
}

LIBRARY_DB = """\
# name|description|vendor
libpspdfkit|PSPDFKit PDF rendering engine|PSPDFKit GmbH
libc++_shared|LLVM C++ standard library|Android NDK
"""


def write_files(root: Path, files: dict[str, str | bytes]) -> Path:
    """Write a mapping of relative paths to contents under root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


def zip_bytes(files: dict[str, str | bytes]) -> bytes:
    """Build an in-memory ZIP archive from a mapping of entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def make_zip(path: Path, files: dict[str, str | bytes]) -> Path:
    """Write a ZIP archive (APK or split container) to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(zip_bytes(files))
    return path


@pytest.fixture
def decoded_dir(tmp_path):
    """Decoded (apktool-style) tree of the sample app."""
    return write_files(tmp_path / "decoded", DECODED_FILES)


@pytest.fixture
def raw_dir(tmp_path):
    """Raw (unzipped) tree of the sample app."""
    return write_files(tmp_path / "raw", RAW_FILES)


@pytest.fixture
def sample_apk(tmp_path):
    """A minimal APK whose entries mirror the raw tree."""
    return make_zip(tmp_path / "input" / "viewer.apk", RAW_FILES)


@pytest.fixture
def library_db(tmp_path):
    """Library reference database for the sample app."""
    path = tmp_path / "libraries.txt"
    path.write_text(LIBRARY_DB, encoding="utf-8")
    return path


@pytest.fixture
def competitor_list(tmp_path):
    """Competitor list with comments and annotations."""
    path = tmp_path / "competitors.txt"
    path.write_text(
        "# rivals\n\nAcme Corp [acquired 2021]\nFoxit\n", encoding="utf-8"
    )
    return path


@pytest.fixture
def fake_decompile():
    """Decompile callable that writes the sample trees instead of running apktool."""

    def decompile(apk_path: Path, output_dir: Path) -> DecodedPackage:
        decoded = write_files(output_dir / "decoded", DECODED_FILES)
        raw = output_dir / "raw"
        with zipfile.ZipFile(apk_path) as apk:
            apk.extractall(raw)
        return DecodedPackage(apk_path=apk_path, decoded_dir=decoded, raw_dir=raw)

    return decompile
