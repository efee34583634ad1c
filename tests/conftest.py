from pathlib import Path

import pytest

import funstack

SAMPLE = Path(__file__).resolve().parent.parent / 'samples' / 'factorial.fun'


def _shape(code):
    return [(i.op, _shape(i.arg)) if i.op == 'LOOP' else (i.op, i.arg) for i in code]


@pytest.fixture
def sample_path():
    return SAMPLE


@pytest.fixture
def sample():
    return funstack.load(SAMPLE.read_text(encoding='utf-8'))


@pytest.fixture
def shape():
    """Instructions without source positions, loops expanded."""
    return _shape
