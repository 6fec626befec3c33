from pydantic import BaseModel, ConfigDict, field_validator

from grenpkg._utils.string_utils import is_dashed_alphanumeric, is_lower_dashed_name


class PackageNameError(ValueError):
    """Raised when a package name string is invalid."""


class PackageName(BaseModel):
    """A published package name such as ``gren-lang/core``.

    author="gren-lang", name="core"
    """

    model_config = ConfigDict(frozen=True)

    author: str
    name: str

    @field_validator("author")
    @classmethod
    def validate_author(cls, author: str) -> str:
        if not is_dashed_alphanumeric(author):
            msg = f"Invalid package author '{author}'. Use letters and digits separated by single dashes."
            raise ValueError(msg)
        return author

    @field_validator("name")
    @classmethod
    def validate_name(cls, name: str) -> str:
        if not is_lower_dashed_name(name):
            msg = f"Invalid package name '{name}'. Use lowercase letters, digits and single dashes, starting with a letter."
            raise ValueError(msg)
        return name

    @property
    def full_name(self) -> str:
        return f"{self.author}/{self.name}"

    def __str__(self) -> str:
        return self.full_name

    @classmethod
    def parse(cls, raw: str) -> "PackageName":
        """Split ``author/name`` on the single slash and validate both parts.

        Args:
            raw: The raw package name string

        Returns:
            The validated PackageName

        Raises:
            PackageNameError: If the string is not of the form ``author/name``
                or either part is invalid
        """
        if raw.count("/") != 1:
            msg = f"Package name '{raw}' must have the form 'author/name'"
            raise PackageNameError(msg)
        author, name = raw.split("/")
        if not is_dashed_alphanumeric(author):
            msg = f"Author '{author}' in package name '{raw}' must be letters and digits separated by single dashes"
            raise PackageNameError(msg)
        if not is_lower_dashed_name(name):
            msg = f"Name '{name}' in package name '{raw}' must be lowercase letters, digits and single dashes, starting with a letter"
            raise PackageNameError(msg)
        return cls(author=author, name=name)

    @classmethod
    def is_valid(cls, raw: str) -> bool:
        try:
            cls.parse(raw)
        except PackageNameError:
            return False
        return True
