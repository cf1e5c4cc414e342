import sys
from pathlib import Path

import pytest

from contextbus.codeinfo import (
    CODE_INFO_SKIP,
    CodeInfoBasic,
    CodeInfoID,
    CodeInfoStorage,
    caller_info,
)


def test_get_code_info_basic_reports_caller():
    storage = CodeInfoStorage()
    info = storage.get(CodeInfoID.TEST, CODE_INFO_SKIP)
    assert info.name == "test_get_code_info_basic_reports_caller"
    assert Path(info.file).name == Path(__file__).name


def _lookup(storage):
    return storage.get(CodeInfoID.TEST, CODE_INFO_SKIP + 1)


def test_get_is_cached_once():
    storage = CodeInfoStorage()
    first = _lookup(storage)
    second = storage.get(CodeInfoID.TEST, CODE_INFO_SKIP)
    assert second is first
    assert first.name == "test_get_is_cached_once"


def test_deeper_skip_reaches_outer_function():
    storage = CodeInfoStorage()
    info = _lookup(storage)
    assert info.name == "test_deeper_skip_reaches_outer_function"


@pytest.mark.parametrize("info_id", [CodeInfoID.UNSET, CodeInfoID.END, -1, 5])
def test_invalid_id_raises(info_id):
    with pytest.raises(ValueError):
        CodeInfoStorage().get(info_id, CODE_INFO_SKIP)


def test_caller_info_line_and_name():
    info, line = caller_info(1), sys._getframe().f_lineno
    assert info.line == line
    assert info.name == "test_caller_info_line_and_name"


def test_caller_info_zero_is_itself():
    assert caller_info(0).name == "caller_info"


def test_caller_info_too_deep_is_empty():
    assert caller_info(100_000) == CodeInfoBasic()