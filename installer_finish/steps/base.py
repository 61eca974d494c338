"""Common Info/Write contract of the finish steps."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from installer_finish.domain.models import (
    FinishFunction,
    InstallContext,
    InstallMode,
    StepInfo,
    StepKind,
    step_info,
)
from installer_finish.exceptions import FinishError, UnknownOperationError
from installer_finish.logging import LoggerFactory, operation_context


class FinishStep:
    """One post-installation action, called by the finish dispatcher.

    Subclasses set ``kind``, ``title``, ``modes`` (and ``steps`` when it is
    not 1) and implement write(). Collaborators are passed to the
    constructor; from_settings() builds the default ones.
    """

    kind: ClassVar[StepKind]
    title: ClassVar[str | None] = None
    modes: ClassVar[tuple[InstallMode, ...]] = ()
    steps: ClassVar[int] = 1

    def __init__(self, context: InstallContext):
        self.context = context
        self.log = LoggerFactory.for_finish(self.name)

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> FinishStep:
        return cls(context)

    @property
    def name(self) -> str:
        return f"{self.kind.value}_finish"

    @property
    def destdir(self) -> str:
        return self.context.destdir

    def info(self) -> StepInfo:
        return step_info(self.steps, self.title, self.modes)

    def write(self, params: Mapping[str, Any]) -> bool | None:
        raise NotImplementedError

    def call(self, function: object, params: Mapping[str, Any] | None = None) -> Any:
        """Run Info or Write.

        Unknown function names are logged and give None. A Write failing with
        FinishError or OSError is logged and gives False.
        """
        params = MappingProxyType(dict(params or {}))
        self.log.debug(f"func={function}")
        self.log.debug(f"param={dict(params)}")

        try:
            func = FinishFunction.parse(function)
        except UnknownOperationError as error:
            self.log.error(str(error))
            return None

        if func is FinishFunction.INFO:
            return self.info().to_dict()

        try:
            with operation_context(self.name, destdir=self.destdir):
                ret = self.write(params)
        except (FinishError, OSError) as error:
            # Failures end here; the dispatcher only sees the boolean
            self.log.error(f"{self.name} could not complete: {error}")
            return False
        self.log.debug(f"ret={ret}")
        return ret
