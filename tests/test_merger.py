"""Tests for split container reconstruction."""

import zipfile

import pytest
from conftest import make_zip, zip_bytes

from sdkscope.core.merger import (
    SplitPackageMerger,
    is_arch_split,
    is_config_split,
    is_master_split,
)
from sdkscope.exceptions import (
    BasePackageExtractionError,
    InvalidContainerError,
    NoBaseArchiveFoundError,
    SplitPackageExtractionError,
)

BASE = {
    "AndroidManifest.xml": "base-manifest",
    "classes.dex": "dex",
    "res/shared.txt": "from-base",
    "assets/base.txt": "base",
}
ARM64 = {
    "lib/arm64-v8a/libnative.so": "arm64",
    "res/shared.txt": "from-arm64",
}
X86 = {
    "lib/x86/libnative.so": "x86",
}
LOCALE = {
    "res/values-de/strings.xml": "<resources/>",
}


def _read(apk, name):
    with zipfile.ZipFile(apk) as zf:
        return zf.read(name).decode()


def _names(apk):
    with zipfile.ZipFile(apk) as zf:
        return set(zf.namelist())


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def container(tmp_path):
    return make_zip(
        tmp_path / "app.apks",
        {
            "base.apk": zip_bytes(BASE),
            "split_config.arm64_v8a.apk": zip_bytes(ARM64),
            "split_config.x86.apk": zip_bytes(X86),
            "split_config.de.apk": zip_bytes(LOCALE),
            "toc.pb": b"\x00\x01",
        },
    )


class TestClassification:
    """Tests for split naming conventions."""

    @pytest.mark.parametrize(
        "name",
        [
            "split_config.arm64_v8a.apk",
            "config.armeabi_v7a.apk",
            "split_config.x86_64.apk",
            "splits/split_config.x86.apk",
        ],
    )
    def test_arch_splits(self, name):
        assert is_config_split(name)
        assert is_arch_split(name)

    @pytest.mark.parametrize(
        "name", ["split_config.en.apk", "config.xxhdpi.apk", "split_config.de.apk"]
    )
    def test_config_splits_that_are_not_arch(self, name):
        assert is_config_split(name)
        assert not is_arch_split(name)

    @pytest.mark.parametrize("name", ["base.apk", "com.example.app.apk", "feature.apk"])
    def test_non_config_entries(self, name):
        assert not is_config_split(name)

    def test_base_apk_preferred_over_other_candidates(self):
        base, arch, other = SplitPackageMerger.classify(
            ["a_feature.apk", "base.apk", "split_config.en.apk"]
        )
        assert base == "base.apk"
        assert arch == []
        assert other == ["a_feature.apk", "split_config.en.apk"]

    def test_xapk_style_base(self):
        base, arch, other = SplitPackageMerger.classify(
            ["com.example.app.apk", "config.arm64_v8a.apk", "config.en.apk"]
        )
        assert base == "com.example.app.apk"
        assert arch == ["config.arm64_v8a.apk"]
        assert other == ["config.en.apk"]

    def test_no_base(self):
        with pytest.raises(NoBaseArchiveFoundError):
            SplitPackageMerger.classify(["split_config.en.apk"])

    @pytest.mark.parametrize(
        ("name", "arch"),
        [
            ("splits/base-arm64_v8a.apk", True),
            ("splits/base-armeabi_v7a.apk", True),
            ("splits/base-xxhdpi.apk", False),
            ("splits/base-en.apk", False),
        ],
    )
    def test_bundletool_config_splits(self, name, arch):
        assert is_config_split(name)
        assert is_arch_split(name) is arch

    def test_bundletool_master_is_not_a_config_split(self):
        assert is_master_split("splits/base-master.apk")
        assert is_master_split("splits/feature-master.apk")
        assert not is_config_split("splits/base-master.apk")
        # Dashes outside splits/ are ordinary file names
        assert not is_config_split("com.example-app.apk")

    def test_bundletool_layout(self):
        base, arch, other = SplitPackageMerger.classify(
            [
                "splits/base-arm64_v8a.apk",
                "splits/base-master.apk",
                "splits/base-xxhdpi.apk",
            ]
        )
        assert base == "splits/base-master.apk"
        assert arch == ["splits/base-arm64_v8a.apk"]
        assert other == ["splits/base-xxhdpi.apk"]

    def test_bundletool_base_master_preferred_over_feature_master(self):
        base, arch, other = SplitPackageMerger.classify(
            [
                "splits/base-master.apk",
                "splits/base-x86.apk",
                "splits/camera-master.apk",
            ]
        )
        assert base == "splits/base-master.apk"
        assert arch == ["splits/base-x86.apk"]
        assert other == ["splits/camera-master.apk"]

    def test_bundletool_standalones_skipped(self):
        base, arch, other = SplitPackageMerger.classify(
            [
                "splits/base-arm64_v8a.apk",
                "splits/base-master.apk",
                "standalones/standalone-arm64_v8a_hdpi.apk",
                "standalones/standalone-x86_hdpi.apk",
            ]
        )
        assert base == "splits/base-master.apk"
        assert arch == ["splits/base-arm64_v8a.apk"]
        assert other == []


class TestSplitPackageMerger:
    """Tests for the merge workflow."""

    def test_every_path_is_merged(self, container, tmp_path, work_dir):
        output = tmp_path / "merged.apk"
        result = SplitPackageMerger(container, output, work_dir=work_dir).merge()

        assert result.output_path == output.resolve()
        assert output.stat().st_size > 0
        expected = set(BASE) | set(ARM64) | set(X86) | set(LOCALE)
        assert _names(output) == expected
        assert result.files_written == len(expected)

    def test_arch_split_wins_on_collision(self, container, tmp_path, work_dir):
        output = tmp_path / "merged.apk"
        result = SplitPackageMerger(container, output, work_dir=work_dir).merge()

        assert _read(output, "res/shared.txt") == "from-arm64"
        assert _read(output, "AndroidManifest.xml") == "base-manifest"
        assert result.collisions == 1

    def test_merge_order(self, container, tmp_path, work_dir):
        result = SplitPackageMerger(
            container, tmp_path / "merged.apk", work_dir=work_dir
        ).merge()

        assert result.base_apk == "base.apk"
        assert result.arch_splits == [
            "split_config.arm64_v8a.apk",
            "split_config.x86.apk",
        ]
        assert result.other_splits == ["split_config.de.apk"]

    def test_bundletool_container(self, tmp_path, work_dir):
        container = make_zip(
            tmp_path / "bundle.apks",
            {
                "toc.pb": b"\x00",
                "splits/base-master.apk": zip_bytes(BASE),
                "splits/base-arm64_v8a.apk": zip_bytes(ARM64),
                "splits/base-xxhdpi.apk": zip_bytes({"res/icon.png": "png"}),
                "standalones/standalone-arm64_v8a_xxhdpi.apk": zip_bytes(
                    {"res/shared.txt": "from-standalone", "standalone.txt": "s"}
                ),
            },
        )
        output = tmp_path / "merged.apk"
        result = SplitPackageMerger(container, output, work_dir=work_dir).merge()

        assert result.base_apk == "splits/base-master.apk"
        assert result.arch_splits == ["splits/base-arm64_v8a.apk"]
        assert result.other_splits == ["splits/base-xxhdpi.apk"]
        assert _read(output, "res/shared.txt") == "from-arm64"
        assert "standalone.txt" not in _names(output)
        assert "res/icon.png" in _names(output)

    def test_config_split_written_last(self, tmp_path, work_dir):
        container = make_zip(
            tmp_path / "app.xapk",
            {
                "com.example.app.apk": zip_bytes({"res/a.txt": "base"}),
                "config.arm64_v8a.apk": zip_bytes({"res/a.txt": "arch"}),
                "config.en.apk": zip_bytes({"res/a.txt": "locale"}),
            },
        )
        output = tmp_path / "merged.apk"
        SplitPackageMerger(container, output, work_dir=work_dir).merge()
        assert _read(output, "res/a.txt") == "locale"

    def test_native_libraries_stored_uncompressed(
        self, container, tmp_path, work_dir
    ):
        output = tmp_path / "merged.apk"
        SplitPackageMerger(container, output, work_dir=work_dir).merge()

        with zipfile.ZipFile(output) as zf:
            info = zf.getinfo("lib/arm64-v8a/libnative.so")
            assert info.compress_type == zipfile.ZIP_STORED

    def test_default_output_path(self, container, work_dir):
        result = SplitPackageMerger(container, work_dir=work_dir).merge()
        assert result.output_path == container.parent / "app.merged.apk"

    def test_staging_removed_after_success(self, container, tmp_path, work_dir):
        output = tmp_path / "merged.apk"
        SplitPackageMerger(container, output, work_dir=work_dir).merge()
        assert list(work_dir.iterdir()) == []

    def test_no_base_leaves_nothing_behind(self, tmp_path, work_dir):
        container = make_zip(
            tmp_path / "nobase.apks",
            {
                "split_config.arm64_v8a.apk": zip_bytes(ARM64),
                "split_config.en.apk": zip_bytes(LOCALE),
            },
        )
        output = tmp_path / "merged.apk"

        with pytest.raises(NoBaseArchiveFoundError) as exc_info:
            SplitPackageMerger(container, output, work_dir=work_dir).merge()

        assert "nobase.apks" in str(exc_info.value)
        assert not output.exists()
        assert list(work_dir.iterdir()) == []
        assert list(tmp_path.glob("*.apk")) == []

    def test_corrupt_split(self, tmp_path, work_dir):
        container = make_zip(
            tmp_path / "app.apks",
            {
                "base.apk": zip_bytes(BASE),
                "split_config.arm64_v8a.apk": b"not a zip",
            },
        )
        output = tmp_path / "merged.apk"

        with pytest.raises(SplitPackageExtractionError):
            SplitPackageMerger(container, output, work_dir=work_dir).merge()

        assert not output.exists()
        assert list(work_dir.iterdir()) == []

    def test_corrupt_base(self, tmp_path, work_dir):
        container = make_zip(tmp_path / "app.apks", {"base.apk": b"garbage"})

        with pytest.raises(BasePackageExtractionError):
            SplitPackageMerger(
                container, tmp_path / "merged.apk", work_dir=work_dir
            ).merge()

        assert list(work_dir.iterdir()) == []

    def test_container_not_a_zip(self, tmp_path, work_dir):
        container = tmp_path / "app.apks"
        container.write_bytes(b"plain text")

        with pytest.raises(SplitPackageExtractionError):
            SplitPackageMerger(
                container, tmp_path / "merged.apk", work_dir=work_dir
            ).merge()

        assert list(work_dir.iterdir()) == []

    def test_missing_container(self, tmp_path):
        with pytest.raises(InvalidContainerError):
            SplitPackageMerger(tmp_path / "missing.apks").merge()
