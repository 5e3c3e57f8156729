from enum import Enum, IntEnum


class FormatVersion(IntEnum):
    """Wire format of an ingest stream; each listening port is bound to one."""

    V1 = 1
    V2 = 2
    V3 = 3


class LogStream(str, Enum):
    V1 = "v1"
    V2 = "v2"
    V3 = "v3"

    @classmethod
    def for_version(cls, version: FormatVersion) -> "LogStream":
        return cls(f"v{int(version)}")
