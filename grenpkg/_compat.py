import sys

if sys.version_info >= (3, 11):
    import tomllib
    from enum import StrEnum
    from typing import Self
else:
    import tomli as tomllib  # type: ignore[no-redef]
    from backports.strenum import StrEnum  # type: ignore[import-not-found, no-redef]
    from typing_extensions import Self  # type: ignore[assignment]

__all__ = ["Self", "StrEnum", "tomllib"]
