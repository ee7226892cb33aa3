from pathlib import Path

import pytest
from setuptools import find_namespace_packages

ROOT = Path(__file__).resolve().parent.parent


def test_wheel_includes_service_and_blueprint_packages():
    tomllib = pytest.importorskip('tomllib')
    with open(ROOT / 'pyproject.toml', 'rb') as f:
        find = tomllib.load(f)['tool']['setuptools']['packages']['find']

    assert find['namespaces'] is True
    packages = find_namespace_packages(where=str(ROOT), include=find['include'])
    assert {'eventflow', 'eventflow.services', 'eventflow.blueprints'} <= set(packages)
