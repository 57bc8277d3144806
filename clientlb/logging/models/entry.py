from typing import Any

import msgspec
import msgspec.structs

from .log_level import LogLevel


class Entry(msgspec.Struct, kw_only=True):
    """
    Base for structured log entries. Subclasses add the fields a
    component wants recorded, such as the balancer or server involved.
    """

    level: LogLevel
    message: str | None = None
    tags: frozenset[str] = msgspec.field(default_factory=frozenset)

    def render(self, template: str, **context: Any) -> str:
        """
        Format ``template`` with the entry's fields and ``context``.
        Context values replace entry fields of the same name.
        """
        fields = msgspec.structs.asdict(self)
        fields["level"] = self.level.value
        fields.update(context)

        return template.format(**fields)
