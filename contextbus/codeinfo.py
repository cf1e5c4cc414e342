"""Cached source-location information for places where observations are made."""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from enum import IntEnum


class CodeInfoID(IntEnum):
    """Identifiers of code sites whose location is looked up once and cached."""

    UNSET = 0
    TEST = 1
    END = 2


# Frames to skip so that CodeInfoStorage.get reports the location of its own caller.
CODE_INFO_SKIP = 2


@dataclass(frozen=True)
class CodeInfoBasic:
    name: str = ""
    file: str = ""
    line: int = 0


def caller_info(skip: int) -> CodeInfoBasic:
    """Describe the frame ``skip`` levels up; 0 is this function, 1 its caller.

    An empty record is returned when the stack is not that deep.
    """
    try:
        frame = sys._getframe(skip)
    except ValueError:
        return CodeInfoBasic()
    return CodeInfoBasic(
        name=frame.f_code.co_name,
        file=frame.f_code.co_filename,
        line=frame.f_lineno,
    )


class CodeInfoStorage:
    """Looks up each code site's location on first use and returns the cached value after."""

    def __init__(self) -> None:
        self._infos: dict[int, CodeInfoBasic] = {}
        self._lock = threading.Lock()

    def get(self, info_id: int, skip: int) -> CodeInfoBasic:
        if info_id <= CodeInfoID.UNSET or info_id >= CodeInfoID.END:
            raise ValueError(f"invalid code info id: {info_id}")
        with self._lock:
            info = self._infos.get(info_id)
            if info is None:
                info = caller_info(skip)
                self._infos[info_id] = info
        return info


code_info_storage = CodeInfoStorage()