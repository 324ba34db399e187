from datetime import time

import pytest

from student_attendance.config import parse_cutoff
from student_attendance.descriptors import average_descriptor, descriptor_to_json, parse_descriptor
from student_attendance.exceptions import ConfigurationError, DescriptorError


def test_parse_cutoff():
    assert parse_cutoff("08:30") == time(8, 30)
    assert parse_cutoff(" 17:05 ") == time(17, 5)
    assert parse_cutoff(None) is None
    assert parse_cutoff("") is None
    for bad in ("8", "25:00", "ab:cd", "08:30:00"):
        with pytest.raises(ConfigurationError):
            parse_cutoff(bad)


def test_parse_descriptor_accepts_json_and_sequences():
    vector = parse_descriptor("[0.5, -0.25]")
    assert vector.dtype.name == "float32"
    assert vector.tolist() == [0.5, -0.25]
    assert not vector.flags.writeable
    assert parse_descriptor((1, 2)).tolist() == [1.0, 2.0]


@pytest.mark.parametrize("raw", ["[", "[]", "[[1, 2], [3, 4]]", '["a"]', "[NaN]", "{}"])
def test_parse_descriptor_rejects_bad_values(raw):
    with pytest.raises(DescriptorError):
        parse_descriptor(raw)


def test_descriptor_to_json_is_loadable():
    assert parse_descriptor(descriptor_to_json([0.5, 1.0])).tolist() == [0.5, 1.0]


def test_average_descriptor_requires_samples():
    with pytest.raises(DescriptorError):
        average_descriptor([])
