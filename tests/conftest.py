from __future__ import annotations

import functools
import logging
import shutil
import sys
from pathlib import Path

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from securetrace.core.config import Config  # noqa: E402
from securetrace.forensics.chain import ForensicLogChain  # noqa: E402
from securetrace.security.asymmetric import Keypair, generate_keypair  # noqa: E402
from securetrace.session.handshake import Handshake  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Config loaded from a copy of the repo's config directory."""

    cfg_src = REPO_ROOT / "config" / "default.yaml"
    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)

    # copy default + presets
    shutil.copy2(cfg_src, cfg_dst_dir / "default.yaml")
    shutil.copytree(REPO_ROOT / "config" / "presets", cfg_dst_dir / "presets")

    return Config.from_yaml(cfg_dst_dir / "default.yaml")


@pytest.fixture(scope="session")
def rsa_keypair() -> Keypair:
    # RSA generation is slow; one keypair serves the whole run.
    return generate_keypair(2048)


@pytest.fixture()
def fast_handshake(rsa_keypair: Keypair):
    """Handshake factory that reuses the session keypair."""

    return functools.partial(Handshake, keypair_factory=lambda: rsa_keypair)


@pytest.fixture()
def chain() -> ForensicLogChain:
    return ForensicLogChain(default_user_id="tester")


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """configure_logging() mutates the package logger; undo it after each test."""

    logger = logging.getLogger("securetrace")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
