"""Shared fixtures."""

import pytest

from backingfiles.utils.types import ProvisionConfig

from fakes import FakeSystemTools


@pytest.fixture
def mountpoint(tmp_path):
    path = tmp_path / "backingfiles"
    path.mkdir()
    return path


@pytest.fixture
def make_config(tmp_path, mountpoint):
    def _make(cam="50%", music="10G", boombox="0", use_exfat=False, **kwargs):
        return ProvisionConfig(
            cam_size=cam,
            music_size=music,
            boombox_size=boombox,
            mountpoint=mountpoint,
            use_exfat=use_exfat,
            mount_root=tmp_path / "mnt",
            **kwargs,
        )

    return _make


@pytest.fixture
def system():
    return FakeSystemTools()
