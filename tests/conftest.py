import pytest
import sys
from pathlib import Path

# Add src to sys.path so we can import dexopt_analyzer
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

# Fixture builders (apk_builder) live beside this file
TESTS_PATH = Path(__file__).resolve().parent
if TESTS_PATH.as_posix() not in sys.path:
    sys.path.insert(0, TESTS_PATH.as_posix())

import apk_builder  # noqa: E402


SAMPLE_DUMP = """\
Dexopt state:
  [com.example.alpha]
    path: /data/app/~~a1==/com.example.alpha-b1==/base.apk
      arm64: [status=speed-profile] [reason=bg-dexopt] [primary-abi]
        [location is /data/app/~~a1==/com.example.alpha-b1==/oat/arm64/base.odex]
      arm: [status=verify] [reason=install]
  [com.example.beta]
    path: /data/app/~~a2==/com.example.beta-b2==/base.apk
      arm64: [status=run-from-apk] [reason=unknown]
  [com.example.gamma]
    path: /data/app/~~a3==/com.example.gamma-b3==/base.apk
      arm64: [status=error] [reason=install-fast]
"""


# Common test fixtures
@pytest.fixture
def sample_dump() -> str:
    """Three-package dexopt dump (speed-profile, run-from-apk, error)."""
    return SAMPLE_DUMP


@pytest.fixture
def literal_app(tmp_path: Path) -> Path:
    """Base container whose manifest holds a literal label."""
    manifest = apk_builder.build_manifest("com.example.alpha", label="Alpha Notes")
    return apk_builder.write_app(tmp_path / "alpha", manifest)


@pytest.fixture
def localized_app(tmp_path: Path) -> Path:
    """Base container with a referenced label in default, fr-FR and de."""
    manifest = apk_builder.build_manifest("com.example.beta", label_ref=apk_builder.LABEL_ID)
    table = apk_builder.build_label_table([
        (("", "", 0), "Beta"),
        (("fr", "FR", 0), "Bêta FR"),
        (("de", "", 0), "Beta DE"),
    ])
    return apk_builder.write_app(tmp_path / "beta", manifest, table)
