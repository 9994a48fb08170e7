from __future__ import annotations


class _NotProvided:
    """Marks a builder argument the caller did not pass.

    ``None`` is a meaningful value for several settings (e.g. disabling the
    log file), so a separate sentinel is needed to tell "unset" apart.
    """

    def __repr__(self) -> str:
        return "NotProvided"

    def __bool__(self) -> bool:
        return False


NotProvided = _NotProvided()
