"""Tests for the package metadata in setup.py."""

import re
from pathlib import Path

SETUP_PY = Path(__file__).resolve().parent.parent / "setup.py"


def _version(value):
    return tuple(int(part) for part in value.split("."))


def test_python_requires_matches_classifiers():
    text = SETUP_PY.read_text()
    required = re.search(r'python_requires=">=([\d.]+)"', text).group(1)
    classified = re.findall(r'"Programming Language :: Python :: (\d+\.\d+)"', text)

    assert classified
    assert min(classified, key=_version) == required
